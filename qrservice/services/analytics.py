from datetime import timedelta
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from ..errors import DependencyError
from ..models import db, QrCode, utcnow


def owner_analytics(owner_id: int, days: int, now=None, top: int = 5) -> dict:
    """Aggregate counters over the owner's finalized artifacts."""
    now = now or utcnow()
    since = now - timedelta(days=days)
    owned = (QrCode.user_id == owner_id, QrCode.status == 'finalized')
    try:
        totals = db.session.execute(
            select(
                func.count(QrCode.id),
                func.coalesce(func.sum(QrCode.access_count), 0),
                func.coalesce(func.sum(QrCode.scan_count), 0),
            ).where(*owned)
        ).one()
        recent = db.session.scalar(
            select(func.count(QrCode.id)).where(*owned, QrCode.created_at >= since)
        ) or 0
        methods = db.session.execute(
            select(QrCode.generated_via, func.count(QrCode.id))
            .where(*owned, QrCode.created_at >= since)
            .group_by(QrCode.generated_via)
            .order_by(func.count(QrCode.id).desc())
        ).all()
        top_rows = db.session.scalars(
            select(QrCode).where(*owned)
            .order_by(QrCode.access_count.desc(), QrCode.created_at.desc())
            .limit(top)
        ).all()
    except SQLAlchemyError as e:
        db.session.rollback()
        raise DependencyError('Store read failed') from e

    return {
        'totalQrCodes': totals[0],
        'totalAccesses': int(totals[1]),
        'totalScans': int(totals[2]),
        'recentQrCodes': recent,
        'days': days,
        'generationMethods': [{'method': m, 'count': c} for m, c in methods],
        'topQrCodes': [
            {
                'id': str(q.id),
                'name': q.name,
                'url': q.data,
                'accessCount': q.access_count,
                'scanCount': q.scan_count,
                'createdAt': q.created_at.isoformat() + 'Z',
            }
            for q in top_rows
        ],
    }
