"""Run a quick request against the app.

Starts the application through FastAPI's TestClient (so the lifespan
creates tables and opens the pool) and prints the `/health` and
`/courses` responses.
"""

import sys
import os

# Ensure backend folder is on sys.path so `registration` package can be imported
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from fastapi.testclient import TestClient
from registration.config import settings
from registration.main import app


def run_testclient():
    with TestClient(app) as client:
        for path in ('/health', '/courses'):
            resp = client.get(f'{settings.API_PREFIX}{path}')
            print(path, 'STATUS:', resp.status_code)
            try:
                print('JSON:', resp.json())
            except ValueError:
                print('CONTENT:', resp.text)


if __name__ == '__main__':
    run_testclient()
