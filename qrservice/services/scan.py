import logging
from datetime import datetime

from ..errors import NotFoundError, ServiceError
from ..models import SCAN_HISTORY_LIMIT, parse_row_id, utcnow

logger = logging.getLogger(__name__)


class ScanTracker:
    """Public scan path: count the scan, then hand back the redirect target.

    Tracking is best effort. The redirect is the contract, so a failed write
    is logged and the target is still returned. Counter and history are
    written in one commit, but concurrent scans of one artifact can still
    lose updates; scan counts are analytics, not billing.
    """

    def __init__(self, store, clock=utcnow, history_limit: int = SCAN_HISTORY_LIMIT):
        self.store = store
        self.clock = clock
        self.history_limit = history_limit

    def track_and_redirect(self, artifact_id, meta: dict) -> str:
        artifact_id = parse_row_id(artifact_id)
        artifact = self.store.get(artifact_id) if artifact_id is not None else None
        if artifact is None or artifact.status != 'finalized':
            raise NotFoundError('QR Code not found')

        target = artifact.data
        now: datetime = self.clock()
        entry = {
            'timestamp': now.isoformat() + 'Z',
            'userAgent': meta.get('userAgent'),
            'ipAddress': meta.get('ipAddress'),
            'referrer': meta.get('referrer'),
        }
        history = list(artifact.scan_history or [])
        history.append(entry)
        # FIFO: keep the most recent entries
        artifact.scan_history = history[-self.history_limit:]
        artifact.scan_count = (artifact.scan_count or 0) + 1
        artifact.last_scanned = now
        try:
            self.store.save(artifact)
        except ServiceError:
            logger.exception('Could not record scan for artifact %s', artifact_id)
        return target
