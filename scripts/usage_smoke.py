#!/usr/bin/env python3
import os
import sys
import json
import requests

# Usage: API_KEY=sk_... python scripts/usage_smoke.py
# Generates a few codes against a running instance and prints usage after each.

BASE_URL = os.environ.get('BASE_URL', 'http://localhost:5000').rstrip('/')
API_KEY = os.environ.get('API_KEY')

if not API_KEY:
    print('Missing API_KEY in env')
    sys.exit(1)

headers = {'x-api-key': API_KEY}

for i in range(1, 4):
    r = requests.get(f"{BASE_URL}/qrcode", headers=headers,
                     params={'url': f'https://example{i}.com', 'name': f'Test QR {i}'}, timeout=30)
    if r.status_code not in (200, 201):
        print('Error:', r.status_code, r.text[:200])
        sys.exit(1)
    data = r.json()
    print(f"[{i}] id={data['qrCode']['id']} cached={data['qrCode']['cached']} status={r.status_code}")
    print('    usage:', json.dumps(data.get('usage')))

# Same URL again: served from cache, usage unchanged
r = requests.get(f"{BASE_URL}/qrcode", headers=headers, params={'url': 'https://example1.com'}, timeout=30)
data = r.json()
print(f"[repeat] cached={data['qrCode']['cached']} accessCount={data['qrCode']['accessCount']}")

r = requests.post(f"{BASE_URL}/qrcode/generate", headers=headers, timeout=30, json={
    'url': 'https://advanced-test.com',
    'name': 'Advanced Test QR',
    'customization': {
        'size': 300,
        'foregroundColor': '#FF0000',
        'backgroundColor': '#FFFFFF',
        'errorCorrectionLevel': 'H',
        'margin': 6,
    },
})
if r.status_code not in (200, 201):
    print('Error:', r.status_code, r.text[:200])
    sys.exit(1)
data = r.json()
print('[styled] id', data['qrCode']['id'])
print('final usage:', json.dumps(data.get('usage'), indent=2))
