import logging
import sys

_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(app):
    """Attach a stdout handler to the package logger at the configured level."""
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    logger = logging.getLogger('qrservice')
    logger.setLevel(level)
    # create_app may run several times in one process (tests, gunicorn preload)
    if not any(getattr(h, '_qrservice', False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(_FORMAT))
        handler._qrservice = True
        logger.addHandler(handler)
    app.logger.setLevel(level)
