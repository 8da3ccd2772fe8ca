import base64
import io
import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout

import qrcode
from qrcode.exceptions import DataOverflowError
from flask import current_app
from PIL import Image

from ..errors import DependencyError, ServiceUnavailableError, ValidationError
from .style import Style

logger = logging.getLogger(__name__)

_LEVELS = {
    'L': qrcode.constants.ERROR_CORRECT_L,
    'M': qrcode.constants.ERROR_CORRECT_M,
    'Q': qrcode.constants.ERROR_CORRECT_Q,
    'H': qrcode.constants.ERROR_CORRECT_H,
}

_pool = ThreadPoolExecutor(max_workers=4, thread_name_prefix='qr-encode')


def make_qr_bytes(content: str, style: Style | None = None) -> bytes:
    """Return QR PNG bytes for ``content`` rendered with ``style``."""
    style = style or Style()
    qr = qrcode.QRCode(
        error_correction=_LEVELS[style.error_correction_level],
        box_size=10,
        border=style.margin,
    )
    qr.add_data(content)
    qr.make(fit=True)
    img = qr.make_image(fill_color=style.foreground_color, back_color=style.background_color)
    img = img.get_image().convert('RGB').resize((style.size, style.size), Image.NEAREST)
    buf = io.BytesIO()
    img.save(buf, format='PNG')
    return buf.getvalue()


def to_data_url(png: bytes) -> str:
    return 'data:image/png;base64,' + base64.b64encode(png).decode('ascii')


def encode(content: str, style: Style | None = None, timeout: float | None = None) -> str:
    """Render ``content`` as a PNG data URL, bounded by the encoder timeout."""
    if timeout is None:
        timeout = current_app.config.get('ENCODER_TIMEOUT_SECONDS', 5)
    future = _pool.submit(make_qr_bytes, content, style)
    try:
        png = future.result(timeout=timeout)
    except FutureTimeout:
        future.cancel()
        logger.warning('QR encoding timed out after %ss', timeout)
        raise ServiceUnavailableError('QR encoder timed out')
    except DataOverflowError:
        raise ValidationError('url does not fit in a QR code at this error correction level')
    except Exception as e:
        logger.exception('QR encoding failed')
        raise DependencyError(f'QR encoding failed: {e}')
    return to_data_url(png)
