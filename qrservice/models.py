from datetime import datetime, timezone
from flask_sqlalchemy import SQLAlchemy


def utcnow() -> datetime:
    # Naive UTC; SQLite drops tzinfo and every comparison in the ledger is UTC.
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _iso(ts):
    return ts.isoformat() + 'Z' if ts else None


db = SQLAlchemy()

SCAN_HISTORY_LIMIT = 100

# SQLite only autoincrements an INTEGER PRIMARY KEY
BigId = db.BigInteger().with_variant(db.Integer, 'sqlite')
MAX_ROW_ID = 2 ** 63 - 1


def parse_row_id(raw):
    """Path segment to primary key, or None when it cannot name a row."""
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return None
    if value <= 0 or value > MAX_ROW_ID:
        return None
    return value


class User(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(32), default='user', nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'email': self.email,
            'role': self.role,
            'createdAt': _iso(self.created_at),
        }


class ApiKey(db.Model):
    __tablename__ = 'api_key'
    __table_args__ = {'sqlite_autoincrement': True}

    id = db.Column(BigId, primary_key=True, autoincrement=True)
    name = db.Column(db.String(100), nullable=False)
    key = db.Column(db.String(128), unique=True, nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    expires_at = db.Column(db.DateTime)
    last_used = db.Column(db.DateTime)
    usage_count = db.Column(db.Integer, default=0, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now

    def masked_key(self) -> str:
        return f'{self.key[:7]}...{self.key[-4:]}'

    def to_dict(self, reveal: bool = False):
        return {
            'id': str(self.id),
            'name': self.name,
            'key': self.key if reveal else self.masked_key(),
            'isActive': self.is_active,
            'expiresAt': _iso(self.expires_at),
            'lastUsed': _iso(self.last_used),
            'usageCount': self.usage_count,
            'createdAt': _iso(self.created_at),
        }


class QrCode(db.Model):
    __tablename__ = 'qr_code'
    __table_args__ = (
        db.Index('ix_qr_code_lookup', 'user_id', 'generated_via', 'data'),
        db.Index('ix_qr_code_window', 'user_id', 'generated_via', 'created_at'),
        # printed codes embed the id; a deleted id must never be handed out again
        {'sqlite_autoincrement': True},
    )

    id = db.Column(BigId, primary_key=True, autoincrement=True)
    name = db.Column(db.String(100), nullable=False)
    data = db.Column(db.String(2048), nullable=False)
    qr_data = db.Column(db.Text, nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    api_key_id = db.Column(db.BigInteger)
    generated_via = db.Column(db.String(16), nullable=False)  # session|apikey
    status = db.Column(db.String(16), default='pending', nullable=False)  # pending|finalized

    size = db.Column(db.Integer, nullable=False)
    foreground_color = db.Column(db.String(7), nullable=False)
    background_color = db.Column(db.String(7), nullable=False)
    error_correction_level = db.Column(db.String(1), nullable=False)
    margin = db.Column(db.Integer, nullable=False)

    access_count = db.Column(db.Integer, default=1, nullable=False)
    last_accessed = db.Column(db.DateTime)
    scan_count = db.Column(db.Integer, default=0, nullable=False)
    last_scanned = db.Column(db.DateTime)
    scan_history = db.Column(db.JSON, default=list, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def customization(self):
        return {
            'size': self.size,
            'foregroundColor': self.foreground_color,
            'backgroundColor': self.background_color,
            'errorCorrectionLevel': self.error_correction_level,
            'margin': self.margin,
        }

    def to_dict(self, include_image: bool = True, cached: bool | None = None):
        out = {
            'id': str(self.id),
            'name': self.name,
            'url': self.data,
            'customization': self.customization(),
            'generatedVia': self.generated_via,
            'accessCount': self.access_count,
            'lastAccessed': _iso(self.last_accessed),
            'scanCount': self.scan_count,
            'lastScanned': _iso(self.last_scanned),
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }
        if include_image:
            out['qrData'] = self.qr_data
        if cached is not None:
            out['cached'] = cached
        return out
