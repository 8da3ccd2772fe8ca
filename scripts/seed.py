import os, sys, pathlib
# Ensure project root is on PYTHONPATH when running directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from sqlalchemy import select
from werkzeug.security import generate_password_hash

from qrservice import create_app
from qrservice.models import db, User, ApiKey
from qrservice.services.tokens import generate_api_key, sign_session_jwt

# Usage: python scripts/seed.py  (DEMO_EMAIL / DEMO_PASSWORD to override)
email = os.environ.get('DEMO_EMAIL', 'demo@example.com')
password = os.environ.get('DEMO_PASSWORD', 'demo-password')

app = create_app()
with app.app_context():
    user = db.session.scalars(select(User).where(User.email == email)).first()
    if user is None:
        user = User(username='demo', email=email, password_hash=generate_password_hash(password))
        db.session.add(user)
        db.session.commit()
    key = ApiKey(name='seed', key=generate_api_key(), user_id=user.id)
    db.session.add(key)
    db.session.commit()

    print('user:', user.email, '/', password)
    print('bearer:', sign_session_jwt(user.id, user.role))
    print('api key:', key.key)
