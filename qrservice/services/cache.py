import logging
from datetime import datetime

from ..errors import ServiceError

logger = logging.getLogger(__name__)


class ArtifactCache:
    """Best-effort content-addressed reuse of previously generated artifacts.

    The key is (content, owner, channel), plus the style when
    ``include_style`` is set. Nothing enforces uniqueness: two concurrent
    misses both create an artifact, and lookup returns the most recent.
    """

    def __init__(self, store, include_style: bool = True, strict: bool = False):
        self.store = store
        self.include_style = include_style
        self.strict = strict

    def lookup(self, content: str, owner_id: int, channel: str, style=None):
        artifact = self.store.find_cached(
            content, owner_id, channel, style if self.include_style else None
        )
        logger.debug('Cache %s for owner=%s channel=%s', 'hit' if artifact else 'miss', owner_id, channel)
        return artifact

    def record_hit(self, artifact, now: datetime):
        artifact.access_count = (artifact.access_count or 0) + 1
        artifact.last_accessed = now
        try:
            self.store.save(artifact)
        except ServiceError:
            if self.strict:
                raise
            logger.exception('Could not record access for artifact %s', artifact.id)
        return artifact
