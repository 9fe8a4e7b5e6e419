import gc
import logging
import weakref

import pytest
from sqlalchemy import text

from conftest import goods_payload, review_payload, upload_file
from docflow import database
from docflow.database import (
    OPTIONAL_COLUMNS,
    SchemaCapabilities,
    get_capabilities,
    get_engine,
    init_db,
    run_migrations,
)


@pytest.fixture
def legacy_schema(engine):
    """A database created before the note and reason columns existed."""
    with engine.begin() as conn:
        for table, columns in OPTIONAL_COLUMNS.items():
            for column in columns:
                conn.execute(text(f"ALTER TABLE {table} DROP COLUMN {column}"))
    return engine


class TestDetection:
    def test_full_schema(self, engine):
        caps = SchemaCapabilities.detect(engine)
        assert caps.has("goods_receipts", "inspector_note")
        assert caps.has("work_receipts", "rejection_reason")

    def test_missing_columns_are_reported(self, legacy_schema, caplog):
        with caplog.at_level(logging.WARNING, logger="docflow.database"):
            caps = SchemaCapabilities.detect(legacy_schema)
        assert not caps.has("goods_receipts", "inspector_note")
        assert not caps.has("work_receipts", "approval_note")
        assert "Schema compatibility: goods_receipts.inspector_note is missing" in caplog.text

    def test_migrations_restore_columns(self, legacy_schema):
        run_migrations(legacy_schema)
        caps = SchemaCapabilities.detect(legacy_schema)
        for table, columns in OPTIONAL_COLUMNS.items():
            assert all(caps.has(table, c) for c in columns)

    def test_migrations_are_idempotent(self, engine):
        run_migrations(engine)
        run_migrations(engine)
        assert SchemaCapabilities.detect(engine).has("goods_receipts", "approval_note")


class TestLegacyWorkflow:
    def test_goods_flow_without_note_columns(self, legacy_schema, client, users):
        vh, ph = users["vendor"]["headers"], users["pic"]["headers"]
        doc = client.post("/api/bapb", json=goods_payload(), headers=vh)
        assert doc.status_code == 201, doc.text
        doc_id = doc.json()["id"]
        upload_file(client, vh, "bapb", doc_id)
        assert client.patch(f"/api/bapb/{doc_id}/submit", headers=vh).status_code == 200

        r = client.put(f"/api/bapb/{doc_id}/review", json=review_payload("Counted twice"), headers=ph)
        assert r.status_code == 200
        assert r.json()["status"] == "reviewed"
        assert r.json()["inspector_note"] is None

        r = client.put(f"/api/bapb/{doc_id}/reject", json={"reason": "Damaged box"}, headers=ph)
        assert r.status_code == 200
        assert r.json()["rejection_reason"] is None

        detail = client.get(f"/api/bapb/{doc_id}", headers=vh).json()
        assert detail["timeline"][-1]["note"] == "Damaged box"
        assert client.get(f"/api/documents/bapb/{doc_id}/pdf", headers=vh).status_code == 200

    def test_work_approval_without_note_columns(self, legacy_schema, client, users, draft_work):
        r = client.put(
            f"/api/bapp/{draft_work['id']}/approve-direksi",
            json={"note": "Fine"},
            headers=users["direksi"]["headers"],
        )
        assert r.status_code == 200
        assert r.json()["status"] == "approved_direksi"
        assert r.json()["approval_note"] is None


class TestCapabilityCache:
    def test_cached_per_engine(self, engine):
        assert get_capabilities(engine) is get_capabilities(engine)

    def test_entry_released_with_engine(self, data_dir):
        engine = get_engine(f"sqlite:///{data_dir / 'short-lived.sqlite'}")
        init_db(engine)
        get_capabilities(engine)
        assert engine in database._capabilities

        released = weakref.ref(engine)
        engine.dispose()
        del engine
        gc.collect()
        assert released() is None
