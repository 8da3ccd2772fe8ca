from flask import Flask
from flask_migrate import Migrate
from werkzeug.middleware.proxy_fix import ProxyFix

from .config import Config, QuotaPolicy
from .errors import register_error_handlers
from .logging_config import configure_logging
from .models import db


def create_app(overrides=None):
    app = Flask(__name__)
    app.config.from_object(Config())
    if overrides:
        app.config.update(overrides)
    configure_logging(app)
    db.init_app(app)
    Migrate(app, db)
    # Trust reverse proxy headers (Render/Heroku)
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)
    app.extensions['quota_policy'] = QuotaPolicy.from_config(app.config)

    with app.app_context():
        db.create_all()

    from .routes_public import bp as public_bp
    from .routes_api import bp as api_bp
    from .routes_library import bp as library_bp
    from .routes_apikey import bp as apikey_bp
    from .routes_auth import bp as auth_bp
    app.register_blueprint(public_bp)
    app.register_blueprint(api_bp)
    app.register_blueprint(library_bp)
    app.register_blueprint(apikey_bp)
    app.register_blueprint(auth_bp, url_prefix='/auth')
    register_error_handlers(app)

    @app.get('/health')
    def health():
        return {'ok': True}

    return app
