"""
Coercion of caller-supplied ids.

Ids reach the services from URLs, sockets and management commands.  A
value that cannot be an id of the expected kind names no entity, so it
is reported as :class:`~dispatch.exceptions.NotFound` rather than
leaking the ORM's field validation error.
"""
import uuid

from dispatch.exceptions import NotFound


def as_uuid(value, what: str) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError, AttributeError):
        raise NotFound(f'{what} not found')


def as_user_id(value, what: str = 'user') -> int:
    if isinstance(value, bool):
        raise NotFound(f'{what} not found')
    try:
        return int(value)
    except (TypeError, ValueError):
        raise NotFound(f'{what} not found')
