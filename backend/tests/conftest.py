import base64
import json

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from docflow.config import settings
from docflow.database import get_db, get_engine, init_db
from docflow.dependencies import get_dispatcher
from docflow.main import app
from docflow.models.enums import Role
from docflow.services import identity_service
from docflow.services.identity_service import Actor
from docflow.services.notification_service import NotificationDispatcher, PushConfig
from docflow.utils.security import create_access_token

PASSWORD = "secret-pass-123"
PNG_1PX = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)


class FakeSender:
    """Records pushes instead of calling a push service."""

    def __init__(self):
        self.sent: list[tuple[str, dict]] = []
        self.failures: dict[str, Exception] = {}

    def __call__(self, subscription_info, payload, config):
        endpoint = subscription_info["endpoint"]
        self.sent.append((endpoint, json.loads(payload)))
        if endpoint in self.failures:
            raise self.failures[endpoint]


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    path = tmp_path / "data"
    monkeypatch.setattr(settings, "data_dir", path)
    return path


@pytest.fixture
def engine(data_dir):
    engine = get_engine(f"sqlite:///{data_dir / 'test.sqlite'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def test_db(engine):
    TestSession = sessionmaker(bind=engine, autoflush=False, autocommit=False)

    def override_get_db():
        db = TestSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestSession
    app.dependency_overrides.clear()


@pytest.fixture
def push_sender():
    return FakeSender()


@pytest.fixture
def dispatcher(test_db, push_sender):
    config = PushConfig(public_key="test-public-key", private_key="test-private-key", subject="mailto:ops@example.com")
    dispatcher = NotificationDispatcher(config, test_db, sender=push_sender)
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    return dispatcher


@pytest.fixture
def client(test_db, dispatcher):
    return TestClient(app)


def make_account(TestSession, role: Role, email: str, name: str, **profile) -> dict:
    db = TestSession()
    try:
        user = identity_service.create_user(db, role, email, name, PASSWORD, **profile)
        token = create_access_token(user.id, user.role, user.email, user.full_name)
        return {
            "id": user.id,
            "token": token,
            "headers": {"Authorization": f"Bearer {token}"},
            "actor": Actor(id=user.id, role=role, name=name, email=email),
        }
    finally:
        db.close()


@pytest.fixture
def users(test_db):
    return {
        "vendor": make_account(test_db, Role.VENDOR, "vendor@example.com", "Vendor Satu", company_name="PT Satu"),
        "other_vendor": make_account(test_db, Role.VENDOR, "other@example.com", "Vendor Dua"),
        "pic": make_account(test_db, Role.INSPECTOR, "pic@example.com", "Inspector Gudang"),
        "direksi": make_account(test_db, Role.EXECUTIVE, "direksi@example.com", "Direktur Utama"),
    }


def goods_payload(number="GR-001", **overrides) -> dict:
    payload = {
        "number": number,
        "contract_number": "KTR-2024-01",
        "project_name": "Warehouse cabling",
        "contract_value": 1500000,
        "description": "Network cable delivery",
        "document_date": "2024-05-01",
        "delivery_date": "2024-05-03",
        "courier": "JNE",
        "items": [{"name": "Cable", "quantity": 5, "unit": "pcs"}],
        "inspection_result": "Goods received in good condition",
    }
    payload.update(overrides)
    return payload


def work_payload(number="WR-001", **overrides) -> dict:
    payload = {
        "number": number,
        "contract_number": "KTR-2024-02",
        "contract_date": "2024-04-10",
        "contract_value": 25000000,
        "work_location": "Gedung A lantai 2",
        "items": [
            {"item": "Painting", "quantity": 2, "unit": "room", "unit_price": 1000000, "total": 2000000},
        ],
        "inspection_result": "Work completed",
    }
    payload.update(overrides)
    return payload


def review_payload(note=None, **overrides) -> dict:
    payload = {
        "items": [{"name": "Cable", "quantity": 5, "unit": "pcs", "inspection_status": "sesuai"}],
        "note": note,
    }
    payload.update(overrides)
    return payload


def upload_file(client, headers, kind, doc_id, name="evidence.pdf", content=b"%PDF-1.4 evidence"):
    return client.post(
        f"/api/upload/{kind}/{doc_id}",
        files={"files": (name, content, "application/pdf")},
        headers=headers,
    )


@pytest.fixture
def draft_goods(client, users):
    r = client.post("/api/bapb", json=goods_payload(), headers=users["vendor"]["headers"])
    assert r.status_code == 201, r.text
    return r.json()


@pytest.fixture
def submitted_goods(client, users, draft_goods):
    upload_file(client, users["vendor"]["headers"], "bapb", draft_goods["id"])
    r = client.patch(f"/api/bapb/{draft_goods['id']}/submit", headers=users["vendor"]["headers"])
    assert r.status_code == 200, r.text
    return r.json()


@pytest.fixture
def draft_work(client, users):
    r = client.post("/api/bapp", json=work_payload(), headers=users["vendor"]["headers"])
    assert r.status_code == 201, r.text
    return r.json()
