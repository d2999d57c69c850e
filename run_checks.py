import os

# Smoke check against the in-memory store with AI disabled
os.environ.setdefault("USE_MOCK_DB", "true")
os.environ.setdefault("AI_ENABLED", "false")

from fastapi.testclient import TestClient
from app.main import app

with TestClient(app) as client:
    print('ROOT:')
    print(client.get('/').json())

    print('\nHEALTH:')
    print(client.get('/health').json())

    print('\nDB HEALTH:')
    resp = client.get('/health/db')
    print(resp.status_code, resp.json())

    print('\nSUBMIT:')
    resp = client.post('/reports', json={
        'imageRef': 'data:image/png;base64,iVBORw0KGgo=',
        'lat': 29.7604,
        'lng': -95.3698,
        'address': '500 Main St, Houston, TX 77002',
    })
    print(resp.status_code, resp.json())

    print('\nSTATS:')
    print(client.get('/reports/stats/summary').json())
