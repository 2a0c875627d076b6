"""
Best-effort announcement of a new emergency request to nearby hospitals.

Scheduled after the creating transaction commits.  By default the lookup
runs on a small shared worker pool of ``DISPATCH_BROADCAST_WORKERS``
threads so request creation never waits on it.
``DISPATCH_BROADCAST_INLINE`` runs it synchronously instead (used by
the test settings).  Any failure is logged and swallowed.
"""
import logging
import threading
from concurrent.futures import ThreadPoolExecutor

from django.conf import settings
from django.db import close_old_connections, connection, transaction

from dispatch.models import EmergencyRequest
from dispatch.services import events
from dispatch.services.matching import find_nearby_hospitals

logger = logging.getLogger(__name__)

CANDIDATES_EVENT = 'request.candidates'

_executor = None
_executor_lock = threading.Lock()


def announce_candidates(request_id) -> int:
    """Look up candidate hospitals for ``request_id`` and notify each one.

    Returns the number of hospitals notified; 0 when the request is gone
    or no longer pending.
    """
    er = EmergencyRequest.objects.filter(id=request_id).first()
    if er is None or er.status != EmergencyRequest.STATUS_PENDING:
        return 0
    candidates = find_nearby_hospitals((er.pickup_latitude, er.pickup_longitude))
    logger.info('found %d nearby hospitals for emergency %s', len(candidates), er.id)
    for rank, candidate in enumerate(candidates, start=1):
        logger.info('hospital %d: %s, distance %.2f km', rank, candidate.name, candidate.distance)
        events.publish(
            [events.hospital_group(candidate.id)],
            CANDIDATES_EVENT,
            {
                'requestId': str(er.id),
                'rank': rank,
                'distance': candidate.distance,
                'pickupAddress': er.pickup_address,
                'createdAt': er.created_at.isoformat(),
            },
        )
    return len(candidates)


def _run(request_id, *, threaded: bool) -> None:
    if threaded:
        close_old_connections()
    try:
        announce_candidates(request_id)
    except Exception:
        logger.exception('candidate lookup failed for emergency %s', request_id)
    finally:
        if threaded:
            connection.close()


def _get_executor() -> ThreadPoolExecutor:
    global _executor
    with _executor_lock:
        if _executor is None:
            _executor = ThreadPoolExecutor(
                max_workers=settings.DISPATCH_BROADCAST_WORKERS, thread_name_prefix='broadcast',
            )
        return _executor


def shutdown(wait: bool = True) -> None:
    """Stop the worker pool, draining queued broadcasts when ``wait`` is true.

    The next scheduled broadcast starts a fresh pool.
    """
    global _executor
    with _executor_lock:
        executor, _executor = _executor, None
    if executor is not None:
        executor.shutdown(wait=wait)


def schedule_candidate_broadcast(request_id) -> None:
    def fire():
        if settings.DISPATCH_BROADCAST_INLINE:
            _run(request_id, threaded=False)
        else:
            _get_executor().submit(_run, request_id, threaded=True)

    transaction.on_commit(fire)
