#!/usr/bin/env python3
import os, sys, json, jwt

# Usage: python scripts/check_jwt.py <JWT> [PUBLIC_KEY_FILE]
# HS* tokens are checked with env SECRET_KEY; RS* with the key file, env JWT_PUBLIC_KEY or jwt.pub.


def load_key(alg: str, path_hint: str | None):
    if alg.startswith('HS'):
        return os.environ.get('SECRET_KEY', 'dev')
    if path_hint:
        with open(path_hint, 'r') as f:
            return f.read()
    k = os.environ.get('JWT_PUBLIC_KEY')
    if k:
        return k
    try:
        with open('jwt.pub', 'r') as f:
            return f.read()
    except OSError:
        return None


if len(sys.argv) < 2:
    print("Usage: check_jwt.py <JWT> [PUBLIC_KEY_FILE]")
    sys.exit(1)

raw = sys.argv[1].strip()
alg = os.environ.get('JWT_ALG', 'HS256')
key = load_key(alg, sys.argv[2].strip() if len(sys.argv) > 2 else None)
if not key:
    print("ERROR: no verification key available")
    sys.exit(1)

try:
    payload = jwt.decode(raw, key, algorithms=[alg])
except jwt.PyJWTError as e:
    print("ERROR:", e)
    sys.exit(1)

print(json.dumps(payload, indent=2, sort_keys=True))
