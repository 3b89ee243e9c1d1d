import os
from typing import Dict

import pytest
from fastapi.testclient import TestClient
from sqlmodel import SQLModel, Session, create_engine

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("DOCUMENT_RENDER_MODE", "inline")

from baa.main import app  # noqa: E402
from baa import db as db_module  # noqa: E402
from baa.db import get_session  # noqa: E402
from baa import storage as storage_module  # noqa: E402
from baa import documents as documents_module  # noqa: E402
from baa import templates  # noqa: E402
from baa.authorization import Principal  # noqa: E402
from baa.models import Organization  # noqa: E402
from baa.utils import make_token  # noqa: E402

ORGANIZATIONS = [
    ("org-acme", "Acme Therapy", "acme"),
    ("org-bright", "Bright Path Clinic", "brightpath"),
    ("org-cedar", "Cedar Pediatrics", "cedar"),
]

ORG_ADMIN = Principal(principal_id="u-acme-admin", organization_id="org-acme", role="org_admin")
ORG_MEMBER = Principal(principal_id="u-acme-member", organization_id="org-acme", role="org_member")
OTHER_ORG_ADMIN = Principal(principal_id="u-bright-admin", organization_id="org-bright", role="org_admin")
VENDOR_ADMIN = Principal(principal_id="u-vendor", organization_id=None, role="vendor_admin")

VALID_SIGNATURE = {
    "signer_name": "Jane Doe",
    "signer_title": "Practice Director",
    "signer_email": "jane@acme.example.com",
    "consent": True,
}


def headers_for(principal: Principal) -> dict:
    return {"X-Access-Token": make_token(principal.model_dump())}


@pytest.fixture(scope="session")
def test_engine(tmp_path_factory):
    db_path = tmp_path_factory.mktemp("data") / "test.db"
    engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )
    return engine


@pytest.fixture
def setup_db(test_engine):
    db_module.engine = test_engine
    SQLModel.metadata.drop_all(test_engine)
    SQLModel.metadata.create_all(test_engine)
    with Session(test_engine) as session:
        templates.seed_default(session)
        for org_id, name, subdomain in ORGANIZATIONS:
            session.add(Organization(id=org_id, name=name, subdomain=subdomain))
        session.commit()
    yield
    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture
def session(test_engine, setup_db):
    with Session(test_engine) as session:
        yield session


@pytest.fixture
def mock_storage(monkeypatch) -> Dict[str, bytes]:
    store: Dict[str, bytes] = {}

    def fake_put_bytes(key: str, data: bytes, content_type: str = "application/octet-stream"):
        store[key] = bytes(data)

    def fake_get_bytes(key: str) -> bytes:
        if key not in store:
            raise FileNotFoundError(key)
        return store[key]

    for target in (storage_module, documents_module):
        monkeypatch.setattr(target, "put_bytes", fake_put_bytes)
        monkeypatch.setattr(target, "get_bytes", fake_get_bytes)
    return store


@pytest.fixture
def broken_storage(monkeypatch):
    def refuse(*args, **kwargs):
        raise ConnectionRefusedError("minio unreachable")

    for target in (storage_module, documents_module):
        monkeypatch.setattr(target, "put_bytes", refuse)
        monkeypatch.setattr(target, "get_bytes", refuse)


@pytest.fixture
def client(test_engine, setup_db, mock_storage):
    def override_session():
        with Session(test_engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
