import time, threading, logging
import redis
from flask import current_app, request

from ..errors import RateLimitedError

logger = logging.getLogger(__name__)

_r = None
_lock = threading.Lock()


class _MemStore:
    def __init__(self):
        self._data = {}
        self._exp = {}
        self._lock = threading.Lock()

    def _cleanup(self):
        now = time.time()
        expired = [k for k, ts in self._exp.items() if ts <= now]
        for k in expired:
            self._data.pop(k, None)
            self._exp.pop(k, None)

    def incr(self, key):
        with self._lock:
            self._cleanup()
            v = int(self._data.get(key, '0')) + 1
            self._data[key] = str(v)
            return v

    def expire(self, key, ttl):
        with self._lock:
            self._cleanup()
            self._exp[key] = time.time() + ttl


def r():
    global _r
    if _r is not None:
        return _r
    with _lock:
        if _r is not None:
            return _r
        # Decide whether to use Redis or memory store
        url = current_app.config.get('REDIS_URL')
        if current_app.config.get('USE_REDIS', True) and url:
            try:
                client = redis.from_url(url, decode_responses=True)
                # Test connection once; fallback to memory on failure
                client.ping()
                _r = client
                return _r
            except redis.RedisError as e:
                logger.warning('Redis unavailable (%s); throttling in process memory', e)
        _r = _MemStore()
        return _r


def _set(store):
    global _r
    _r = store


def client_ip() -> str:
    return request.remote_addr or '0.0.0.0'


def check_rate_ip(bucket: str, ip: str, limit: int, window: int):
    """Fixed-window per-IP throttle; independent of the generation quota."""
    k = f"rl:{bucket}:{ip}:{int(time.time() // window)}"
    v = r().incr(k)
    r().expire(k, window)
    if v > limit:
        logger.info('Throttled %s for %s (%d > %d)', bucket, ip, v, limit)
        raise RateLimitedError()


def throttle_auth():
    cfg = current_app.config
    check_rate_ip('auth', client_ip(), cfg['AUTH_RATE_LIMIT'], cfg['AUTH_RATE_WINDOW'])


def throttle_apikey_issue():
    cfg = current_app.config
    check_rate_ip('apikey', client_ip(), cfg['APIKEY_RATE_LIMIT'], cfg['APIKEY_RATE_WINDOW'])
