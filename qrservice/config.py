import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() not in ('0', 'false', 'no', 'off', '')


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    return int(raw) if raw else default


@dataclass(frozen=True)
class ChannelLimits:
    hourly_limit: int
    daily_limit: int
    monthly_limit: int


@dataclass(frozen=True)
class QuotaPolicy:
    """Per-channel rolling window limits, fixed for the lifetime of an app."""
    session: ChannelLimits
    apikey: ChannelLimits

    def for_channel(self, channel: str) -> ChannelLimits:
        if channel == 'session':
            return self.session
        if channel == 'apikey':
            return self.apikey
        raise KeyError(channel)

    @classmethod
    def from_config(cls, config) -> 'QuotaPolicy':
        return cls(
            session=ChannelLimits(**config['SESSION_LIMITS']),
            apikey=ChannelLimits(**config['APIKEY_LIMITS']),
        )


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY', 'dev')
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL', 'sqlite:///local.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {'pool_pre_ping': True}
    REDIS_URL = os.environ.get('REDIS_URL', 'redis://localhost:6379/0')
    USE_REDIS = _env_bool('USE_REDIS', True)
    BASE_URL = os.environ.get('BASE_URL', 'http://localhost:5000')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    JWT_ALG = os.environ.get('JWT_ALG', 'HS256')
    JWT_PRIVATE_KEY = os.environ.get('JWT_PRIVATE_KEY')
    JWT_PUBLIC_KEY = os.environ.get('JWT_PUBLIC_KEY')
    JWT_TTL_SECONDS = _env_int('JWT_TTL_SECONDS', 86400)

    ENCODER_TIMEOUT_SECONDS = float(os.environ.get('ENCODER_TIMEOUT_SECONDS', '5'))
    STORE_RETRY_ATTEMPTS = _env_int('STORE_RETRY_ATTEMPTS', 2)
    CACHE_KEY_INCLUDES_STYLE = _env_bool('CACHE_KEY_INCLUDES_STYLE', True)
    STRICT_HIT_RECORDING = _env_bool('STRICT_HIT_RECORDING', False)

    # Per-IP throttles for credential endpoints
    AUTH_RATE_LIMIT = _env_int('AUTH_RATE_LIMIT', 5)
    AUTH_RATE_WINDOW = _env_int('AUTH_RATE_WINDOW', 900)
    APIKEY_RATE_LIMIT = _env_int('APIKEY_RATE_LIMIT', 10)
    APIKEY_RATE_WINDOW = _env_int('APIKEY_RATE_WINDOW', 3600)

    SESSION_LIMITS = {
        'hourly_limit': _env_int('SESSION_HOURLY_LIMIT', 200),
        'daily_limit': _env_int('SESSION_DAILY_LIMIT', 2000),
        'monthly_limit': _env_int('SESSION_MONTHLY_LIMIT', 20000),
    }
    APIKEY_LIMITS = {
        'hourly_limit': _env_int('APIKEY_HOURLY_LIMIT', 100),
        'daily_limit': _env_int('APIKEY_DAILY_LIMIT', 1000),
        'monthly_limit': _env_int('APIKEY_MONTHLY_LIMIT', 10000),
    }

    def __init__(self):
        # Optional fallbacks to support Secret Files on Render (/etc/secrets)
        if not self.JWT_PRIVATE_KEY:
            self.JWT_PRIVATE_KEY = _read_first(('/etc/secrets/jwt.key', 'jwt.key'))
        if not self.JWT_PUBLIC_KEY:
            self.JWT_PUBLIC_KEY = _read_first(('/etc/secrets/jwt.pub', 'jwt.pub'))
        if (not self.SECRET_KEY) or self.SECRET_KEY == 'dev':
            self.SECRET_KEY = _read_first(('/etc/secrets/secret_key',)) or self.SECRET_KEY


def _read_first(paths):
    for p in paths:
        try:
            with open(p, 'r') as f:
                return f.read().strip()
        except OSError:
            continue
    return None
