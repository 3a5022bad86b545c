"""
Pytest fixtures and configuration for geserver tests
"""
import copy
import pytest

from geserver.constants import DEFAULT_SETTINGS
from geserver.itch_client import FetchResult
from geserver.store import JsonStore


class FakeItchClient:
    """Stands in for ItchClient; uploads and errors are set per title"""

    def __init__(self):
        self.uploads = {}
        self.errors = {}
        self.download_urls = {}
        self.calls = []

    def fetch_uploads(self, title_id):
        self.calls.append(title_id)
        if title_id in self.errors:
            return FetchResult.failure(self.errors[title_id])
        return FetchResult(uploads=copy.deepcopy(self.uploads.get(title_id, [])))

    def fetch_download_url(self, upload_id):
        if upload_id in self.download_urls:
            return FetchResult(url=self.download_urls[upload_id])
        return FetchResult.failure("No URL returned")


@pytest.fixture(scope='session')
def app_config():
    """App configuration overrides for tests"""
    return {
        'TESTING': True,
        'SECRET_KEY': 'test-secret-key',
        'RATELIMIT_ENABLED': False,
    }


@pytest.fixture
def store_path(tmp_path):
    return str(tmp_path / 'db' / 'localstorage.json')


@pytest.fixture
def store(store_path):
    return JsonStore(store_path)


@pytest.fixture
def itch_client():
    return FakeItchClient()


@pytest.fixture
def settings(tmp_path, store_path):
    data = copy.deepcopy(DEFAULT_SETTINGS)
    data['storage']['path'] = store_path
    data['storage']['backup_dir'] = str(tmp_path / 'backups')
    data['itch']['title_ids'] = ['g1']
    data['itch']['api_key'] = 'test-key'
    return data


@pytest.fixture
def app(settings, itch_client, app_config):
    from geserver.app import create_app

    return create_app(settings, itch_client=itch_client, start_watcher=False, config=app_config)


@pytest.fixture
def client(app):
    with app.test_client() as client:
        yield client


@pytest.fixture
def admin_headers():
    # 'admin' is the default static token seeded into a fresh store
    return {'Authorization': 'admin'}


@pytest.fixture
def sample_uploads():
    """Two uploads as returned by the itch.io uploads endpoint"""
    return [
        {
            'id': 1001,
            'filename': 'game-win-1.0.zip',
            'updated_at': '2026-01-01 10:00:00',
            'size': 1024,
        },
        {
            'id': 1002,
            'filename': 'game-win-1.1.zip',
            'updated_at': '2026-01-02 10:00:00',
            'size': 2048,
        },
    ]
