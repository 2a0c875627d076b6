import pytest

from dispatch.exceptions import ValidationError
from dispatch.services.pagination import page_bounds


def test_defaults():
    assert page_bounds(None, None) == (1, 20, 0)


def test_offset_for_later_page():
    assert page_bounds(3, 10) == (3, 10, 20)


def test_page_size_is_capped(settings):
    settings.DISPATCH_MAX_PAGE_SIZE = 100
    assert page_bounds(1, 500) == (1, 100, 0)


@pytest.mark.parametrize('page,size', [(-1, 10), (1, -5), (0, 10), (1, 0), ('abc', 10), (1, 'ten')])
def test_rejects_invalid(page, size):
    with pytest.raises(ValidationError):
        page_bounds(page, size)
