import datetime as dt

import pytest
from fastapi.testclient import TestClient

from backoffice.auth.credentials import CredentialService
from backoffice.config import settings
from backoffice.deps import get_storage, get_store
from backoffice.repositories import Repositories
from backoffice.storage.local_provider import LocalStorageProvider
from backoffice.store import CollectionStore


@pytest.fixture
def store(tmp_path):
    return CollectionStore(tmp_path / "data", lock_timeout_s=2.0)


@pytest.fixture
def storage(tmp_path):
    return LocalStorageProvider(tmp_path / "files")


@pytest.fixture
def repos(store, storage):
    return Repositories(store, storage)


@pytest.fixture
def credentials(repos):
    return CredentialService(repos.users, repos.reset_tokens)


@pytest.fixture
def employee_data():
    def make(**overrides):
        data = {
            "full_name": "Ayşe Yılmaz",
            "national_id": "12345678901",
            "birth_date": "1990-04-12",
            "social_security_no": "SGK-001",
            "start_date": "2022-01-10",
            "phone": "+90 555 000 00 00",
        }
        data.update(overrides)
        return data

    return make


@pytest.fixture
def app(store, storage, tmp_path, monkeypatch):
    from backoffice.main import create_app

    monkeypatch.setattr(settings, "data_dir", str(tmp_path / "data"))
    monkeypatch.setattr(settings, "files_dir", str(tmp_path / "files"))
    application = create_app()
    application.dependency_overrides[get_store] = lambda: store
    application.dependency_overrides[get_storage] = lambda: storage
    return application


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def admin(credentials):
    return credentials.create_user({
        "email": "admin@example.com",
        "name": "Admin",
        "password": "s3cret-pass",
        "role": "ADMIN",
    })


@pytest.fixture
def auth_headers(client, admin):
    resp = client.post("/auth/login", json={"email": "admin@example.com", "password": "s3cret-pass"})
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


@pytest.fixture
def today():
    return dt.date.today()
