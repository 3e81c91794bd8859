import io
import os
import sys
import shutil
import tempfile
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from PIL import Image

# Configure test environment before the app reads it at import time
TEST_ROOT = tempfile.mkdtemp(prefix='feedapp-tests-')
os.environ['DATABASE_URL'] = f"sqlite+aiosqlite:///{os.path.join(TEST_ROOT, 'feed.db')}"
os.environ['BASE_DIR'] = TEST_ROOT
os.environ['METRICS_PORT'] = '0'
os.environ.pop('REDIS_URL', None)
os.environ.setdefault('JWT_SECRET', 'test-secret')

# Ensure the package root is on sys.path when pytest changes CWD to this tests dir
HERE = Path(__file__).resolve()
PKG_ROOT = HERE.parents[2]
if str(PKG_ROOT) not in sys.path:
    sys.path.insert(0, str(PKG_ROOT))

from feedapp import core  # noqa: E402
from feedapp.main import app  # noqa: E402
from feedapp.models import Base, engine  # noqa: E402
from feedapp.ws_manager import get_publisher  # noqa: E402


class RecordingPublisher:
    """Stands in for the websocket publisher and keeps every emitted event"""

    def __init__(self):
        self.events = []

    async def emit(self, event, payload):
        self.events.append((event, payload))


def png_bytes(color='red'):
    buf = io.BytesIO()
    Image.new('RGB', (4, 4), color).save(buf, format='PNG')
    return buf.getvalue()


def stored_file(image_url):
    return os.path.join(core.BASE_DIR, image_url)


@pytest.fixture
def publisher():
    recorder = RecordingPublisher()
    app.dependency_overrides[get_publisher] = lambda: recorder
    yield recorder
    app.dependency_overrides.pop(get_publisher, None)


@pytest_asyncio.fixture
async def db():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    shutil.rmtree(core.upload_path(), ignore_errors=True)
    os.makedirs(core.upload_path(), exist_ok=True)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def client(db, publisher):
    async with AsyncClient(transport=ASGITransport(app=app), base_url='http://test') as ac:
        yield ac


async def signup_and_login(ac, email, name='Tester', password='secret1'):
    r = await ac.put('/auth/signup', json={'email': email, 'name': name, 'password': password})
    assert r.status_code == 201, r.text
    login = await ac.post('/auth/login', json={'email': email, 'password': password})
    assert login.status_code == 200, login.text
    body = login.json()
    return body['userId'], {'Authorization': f"Bearer {body['token']}"}


async def create_post(ac, headers, title='A', content='B', filename='x.png', color='red'):
    return await ac.post(
        '/feed/post',
        data={'title': title, 'content': content},
        files={'image': (filename, png_bytes(color), 'image/png')},
        headers=headers,
    )
