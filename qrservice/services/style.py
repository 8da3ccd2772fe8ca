import re
from dataclasses import dataclass, asdict
from urllib.parse import urlsplit

from ..errors import ValidationError

MAX_CONTENT_LENGTH = 2048
# Scanned codes redirect here, so nothing that a browser would execute
ALLOWED_SCHEMES = ('http', 'https')

_HEX = re.compile(r'^#?([0-9A-Fa-f]{6})$')
_LEVELS = ('L', 'M', 'Q', 'H')


@dataclass(frozen=True)
class Style:
    size: int = 300
    foreground_color: str = '#000000'
    background_color: str = '#FFFFFF'
    error_correction_level: str = 'M'
    margin: int = 4

    @classmethod
    def from_payload(cls, payload) -> 'Style':
        """Build a style from a client ``customization`` object.

        Missing keys take defaults. Out-of-range values are rejected rather
        than clamped.
        """
        if payload is None:
            return cls()
        if not isinstance(payload, dict):
            raise ValidationError('customization must be an object')
        base = cls()
        return cls(
            size=_int_in_range(payload.get('size', base.size), 'size', 100, 1000),
            foreground_color=_color(payload.get('foregroundColor', base.foreground_color), 'foregroundColor'),
            background_color=_color(payload.get('backgroundColor', base.background_color), 'backgroundColor'),
            error_correction_level=_level(payload.get('errorCorrectionLevel', base.error_correction_level)),
            margin=_int_in_range(payload.get('margin', base.margin), 'margin', 0, 20),
        )

    def columns(self) -> dict:
        return asdict(self)

    def to_payload(self) -> dict:
        return {
            'size': self.size,
            'foregroundColor': self.foreground_color,
            'backgroundColor': self.background_color,
            'errorCorrectionLevel': self.error_correction_level,
            'margin': self.margin,
        }


def validate_content(url) -> str:
    if url is None or (isinstance(url, str) and not url.strip()):
        raise ValidationError('url is required')
    if not isinstance(url, str):
        raise ValidationError('url must be a string')
    if len(url) > MAX_CONTENT_LENGTH:
        raise ValidationError(f'url must be at most {MAX_CONTENT_LENGTH} characters')
    try:
        parts = urlsplit(url)
    except ValueError:
        raise ValidationError('url must be a valid http or https URL')
    if any(c.isspace() for c in url) or parts.scheme.lower() not in ALLOWED_SCHEMES or not parts.netloc:
        raise ValidationError('url must be a valid http or https URL')
    return url


def validate_name(name, fallback: str) -> str:
    if name is None or name == '':
        return fallback[:100]
    if not isinstance(name, str):
        raise ValidationError('name must be a string')
    name = name.strip()
    if len(name) > 100:
        raise ValidationError('name must be at most 100 characters')
    return name or fallback[:100]


def _int_in_range(value, field, lo, hi):
    # bool is an int subclass; "true" is not a size
    if isinstance(value, bool):
        raise ValidationError(f'{field} must be an integer')
    try:
        value = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be an integer')
    if value < lo or value > hi:
        raise ValidationError(f'{field} must be between {lo} and {hi}')
    return value


def _color(value, field):
    m = _HEX.match(value) if isinstance(value, str) else None
    if not m:
        raise ValidationError(f'{field} must be a 6-digit hex color')
    return '#' + m.group(1).upper()


def _level(value):
    if not isinstance(value, str) or value.upper() not in _LEVELS:
        raise ValidationError('errorCorrectionLevel must be one of L, M, Q, H')
    return value.upper()
