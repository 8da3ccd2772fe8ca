import logging
from flask import current_app
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError, TimeoutError as PoolTimeout

from ..errors import DependencyError, ServiceUnavailableError
from ..models import db, QrCode

logger = logging.getLogger(__name__)

SORT_FIELDS = {
    'createdAt': QrCode.created_at,
    'updatedAt': QrCode.updated_at,
    'name': QrCode.name,
    'accessCount': QrCode.access_count,
    'scanCount': QrCode.scan_count,
}


class ArtifactStore:
    """Persistence for QR artifacts on top of the Flask-SQLAlchemy session.

    Every write is a single-row commit. Reads may be retried; writes never are.
    """

    def __init__(self, session=None, retry_attempts: int = 2):
        self.session = session or db.session
        self.retry_attempts = max(1, retry_attempts)

    # -- plumbing

    def _read(self, fn):
        last = None
        for attempt in range(self.retry_attempts):
            try:
                return fn()
            except PoolTimeout as e:
                self.session.rollback()
                raise ServiceUnavailableError('Store timed out') from e
            except SQLAlchemyError as e:
                self.session.rollback()
                last = e
                logger.warning('Store read failed (attempt %d/%d): %s', attempt + 1, self.retry_attempts, e)
        raise DependencyError('Store read failed') from last

    def _commit(self):
        try:
            self.session.commit()
        except PoolTimeout as e:
            self.session.rollback()
            raise ServiceUnavailableError('Store timed out') from e
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.exception('Store write failed')
            raise DependencyError('Store write failed') from e

    # -- queries

    def find_cached(self, content: str, owner_id: int, channel: str, style=None):
        def q():
            stmt = select(QrCode).where(
                QrCode.data == content,
                QrCode.user_id == owner_id,
                QrCode.generated_via == channel,
                QrCode.status == 'finalized',
            )
            if style is not None:
                stmt = stmt.filter_by(**style.columns())
            stmt = stmt.order_by(QrCode.created_at.desc(), QrCode.id.desc()).limit(1)
            return self.session.scalars(stmt).first()
        return self._read(q)

    def count_created_since(self, owner_id: int, channel: str, since) -> int:
        def q():
            stmt = select(func.count(QrCode.id)).where(
                QrCode.user_id == owner_id,
                QrCode.generated_via == channel,
                QrCode.created_at >= since,
            )
            return self.session.scalar(stmt) or 0
        return self._read(q)

    def earliest_created_since(self, owner_id: int, channel: str, since):
        def q():
            stmt = select(func.min(QrCode.created_at)).where(
                QrCode.user_id == owner_id,
                QrCode.generated_via == channel,
                QrCode.created_at >= since,
            )
            return self.session.scalar(stmt)
        return self._read(q)

    def get(self, artifact_id: int):
        return self._read(lambda: self.session.get(QrCode, artifact_id))

    def get_owned(self, artifact_id: int, owner_id: int):
        def q():
            stmt = select(QrCode).where(
                QrCode.id == artifact_id,
                QrCode.user_id == owner_id,
                QrCode.status == 'finalized',
            )
            return self.session.scalars(stmt).first()
        return self._read(q)

    def list_owned(self, owner_id: int, page: int, limit: int, sort_by: str, descending: bool):
        column = SORT_FIELDS[sort_by]
        order = column.desc() if descending else column.asc()

        def q():
            base = select(QrCode).where(QrCode.user_id == owner_id, QrCode.status == 'finalized')
            total = self.session.scalar(select(func.count()).select_from(base.subquery())) or 0
            rows = self.session.scalars(
                base.order_by(order, QrCode.id.desc()).offset((page - 1) * limit).limit(limit)
            ).all()
            return rows, total
        return self._read(q)

    # -- mutations

    def create_pending(self, **fields) -> QrCode:
        artifact = QrCode(status='pending', **fields)
        self.session.add(artifact)
        self._commit()
        return artifact

    def finalize(self, artifact: QrCode, qr_data: str) -> QrCode:
        artifact.qr_data = qr_data
        artifact.status = 'finalized'
        self._commit()
        return artifact

    def discard(self, artifact: QrCode):
        try:
            self.session.delete(artifact)
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            logger.exception('Could not discard pending artifact %s', artifact.id)

    def save(self, artifact: QrCode) -> QrCode:
        self.session.add(artifact)
        self._commit()
        return artifact

    def delete_owned(self, artifact_id: int, owner_id: int) -> bool:
        artifact = self.get_owned(artifact_id, owner_id)
        if artifact is None:
            return False
        self.session.delete(artifact)
        self._commit()
        return True


def get_store() -> ArtifactStore:
    return ArtifactStore(retry_attempts=current_app.config.get('STORE_RETRY_ATTEMPTS', 2))
