import pytest
from sqlalchemy.exc import IntegrityError

from conftest import goods_payload, make_account, review_payload, upload_file
from docflow.models.enums import Role
from docflow.schemas.document import GoodsReceiptCreate
from docflow.services import workflow
from docflow.services.identity_service import Actor


class TestGoodsReceiptCrud:
    def test_create_starts_as_draft(self, client, users):
        r = client.post("/api/bapb", json=goods_payload(), headers=users["vendor"]["headers"])
        assert r.status_code == 201
        data = r.json()
        assert data["status"] == "draft"
        assert data["vendor_id"] == users["vendor"]["id"]
        assert data["vendor_name"] == "Vendor Satu"

    def test_line_items_round_trip(self, client, users, draft_goods):
        r = client.get(f"/api/bapb/{draft_goods['id']}", headers=users["vendor"]["headers"])
        items = r.json()["items"]
        assert isinstance(items, list)
        assert items[0]["name"] == "Cable"
        assert items[0]["quantity"] == 5
        assert items[0]["unit"] == "pcs"
        assert items[0]["inspection_status"] == "belum_diperiksa"

    def test_items_as_numbered_text(self, client, users):
        r = client.post(
            "/api/bapb",
            json=goods_payload(items="1. Cable: 5 pcs\n2. Switch: 2 unit\nloose remark"),
            headers=users["vendor"]["headers"],
        )
        assert r.status_code == 201
        items = r.json()["items"]
        assert [i["name"] for i in items] == ["Cable", "Switch", "loose remark"]
        assert items[2]["quantity"] == 0
        assert items[2]["notes"] == "non-standard format"

    def test_only_vendor_can_create(self, client, users):
        r = client.post("/api/bapb", json=goods_payload(), headers=users["pic"]["headers"])
        assert r.status_code == 403
        assert r.json()["error"] == "forbidden"

    def test_duplicate_number_conflicts(self, client, users, draft_goods):
        r = client.post("/api/bapb", json=goods_payload(), headers=users["other_vendor"]["headers"])
        assert r.status_code == 409
        assert r.json()["error"] == "conflict"

    def test_unknown_vendor_is_not_reported_as_number_conflict(self, test_db):
        db = test_db()
        try:
            with pytest.raises(IntegrityError, match="FOREIGN KEY"):
                workflow.create_goods_receipt(
                    db, Actor(id=9999, role=Role.VENDOR, name="Removed Vendor"), GoodsReceiptCreate(**goods_payload())
                )
        finally:
            db.close()

    def test_invalid_payload(self, client, users):
        r = client.post(
            "/api/bapb",
            json=goods_payload(contract_value=-5, items=[{"name": "Cable", "quantity": -1}]),
            headers=users["vendor"]["headers"],
        )
        assert r.status_code == 400
        assert r.json()["error"] == "validation_failed"

    def test_update_draft(self, client, users, draft_goods):
        r = client.put(
            f"/api/bapb/{draft_goods['id']}",
            json={"project_name": "Warehouse cabling phase 2"},
            headers=users["vendor"]["headers"],
        )
        assert r.status_code == 200
        assert r.json()["project_name"] == "Warehouse cabling phase 2"
        assert r.json()["number"] == "GR-001"

    def test_update_number_collision(self, client, users, draft_goods):
        h = users["vendor"]["headers"]
        other = client.post("/api/bapb", json=goods_payload("GR-002"), headers=h).json()
        r = client.put(f"/api/bapb/{other['id']}", json={"number": "GR-001"}, headers=h)
        assert r.status_code == 409

    def test_update_keeping_own_number(self, client, users, draft_goods):
        r = client.put(
            f"/api/bapb/{draft_goods['id']}",
            json={"number": "GR-001", "courier": "TIKI"},
            headers=users["vendor"]["headers"],
        )
        assert r.status_code == 200

    def test_other_vendor_cannot_update(self, client, users, draft_goods):
        r = client.put(
            f"/api/bapb/{draft_goods['id']}",
            json={"courier": "TIKI"},
            headers=users["other_vendor"]["headers"],
        )
        assert r.status_code == 404

    def test_update_after_submit_is_invalid_state(self, client, users, submitted_goods):
        r = client.put(
            f"/api/bapb/{submitted_goods['id']}",
            json={"courier": "TIKI"},
            headers=users["vendor"]["headers"],
        )
        assert r.status_code == 400
        assert r.json()["error"] == "invalid_state"
        assert r.json()["current_status"] == "submitted"

    def test_get_by_number(self, client, users, draft_goods):
        r = client.get("/api/bapb/GR-001", headers=users["pic"]["headers"])
        assert r.status_code == 200
        assert r.json()["id"] == draft_goods["id"]

    def test_get_by_all_digit_number(self, client, users, draft_goods):
        h = users["vendor"]["headers"]
        doc = client.post("/api/bapb", json=goods_payload("2024001"), headers=h).json()
        r = client.get("/api/bapb/2024001", headers=h)
        assert r.status_code == 200
        assert r.json()["id"] == doc["id"]
        assert client.get(f"/api/bapb/{doc['id']}", headers=h).json()["number"] == "2024001"

    def test_vendor_cannot_see_foreign_document(self, client, users, draft_goods):
        r = client.get(f"/api/bapb/{draft_goods['id']}", headers=users["other_vendor"]["headers"])
        assert r.status_code == 404


class TestGoodsReceiptList:
    def test_vendor_scoped_and_paginated(self, client, users):
        h = users["vendor"]["headers"]
        for i in range(3):
            client.post("/api/bapb", json=goods_payload(f"GR-10{i}"), headers=h)
        client.post("/api/bapb", json=goods_payload("GR-900"), headers=users["other_vendor"]["headers"])

        r = client.get("/api/bapb?page=1&per_page=2", headers=h)
        data = r.json()
        assert data["total"] == 3
        assert data["total_pages"] == 2
        assert len(data["items"]) == 2

        r = client.get("/api/bapb", headers=users["pic"]["headers"])
        assert r.json()["total"] == 4

    def test_status_and_search_filters(self, client, users, submitted_goods):
        h = users["vendor"]["headers"]
        client.post("/api/bapb", json=goods_payload("GR-777", project_name="Office chairs"), headers=h)

        r = client.get("/api/bapb?status=submitted,reviewed", headers=h)
        assert [d["number"] for d in r.json()["items"]] == ["GR-001"]

        r = client.get("/api/bapb?search=chairs", headers=h)
        assert [d["number"] for d in r.json()["items"]] == ["GR-777"]

    def test_per_page_bounds(self, client, users):
        r = client.get("/api/bapb?per_page=101", headers=users["pic"]["headers"])
        assert r.status_code == 400


class TestGoodsReceiptTransitions:
    def test_submit_requires_attachment(self, client, users, draft_goods):
        r = client.patch(f"/api/bapb/{draft_goods['id']}/submit", headers=users["vendor"]["headers"])
        assert r.status_code == 400
        assert r.json()["error"] == "precondition_failed"
        r = client.get(f"/api/bapb/{draft_goods['id']}", headers=users["vendor"]["headers"])
        assert r.json()["status"] == "draft"

    def test_submit_notifies_every_inspector(self, client, users, test_db, draft_goods):
        second = make_account(test_db, Role.INSPECTOR, "pic2@example.com", "Second Inspector")
        h = users["vendor"]["headers"]
        upload_file(client, h, "bapb", draft_goods["id"])
        assert client.patch(f"/api/bapb/{draft_goods['id']}/submit", headers=h).status_code == 200

        for inspector in (users["pic"], second):
            notes = client.get("/api/notifications", headers=inspector["headers"]).json()
            assert [n["title"] for n in notes] == ["New goods receipt"]
            assert notes[0]["document_id"] == draft_goods["id"]
        confirmation = client.get("/api/notifications", headers=h).json()
        assert [n["title"] for n in confirmation] == ["Goods receipt submitted"]
        assert client.get("/api/notifications", headers=users["direksi"]["headers"]).json() == []

    def test_inspector_cannot_submit(self, client, users, draft_goods):
        r = client.patch(f"/api/bapb/{draft_goods['id']}/submit", headers=users["pic"]["headers"])
        assert r.status_code == 403

    def test_approve_requires_review_first(self, client, users, submitted_goods):
        r = client.put(f"/api/bapb/{submitted_goods['id']}/approve", json={}, headers=users["pic"]["headers"])
        assert r.status_code == 400
        body = r.json()
        assert body["error"] == "invalid_state"
        assert body["current_status"] == "submitted"

    def test_vendor_cannot_review(self, client, users, submitted_goods):
        r = client.put(
            f"/api/bapb/{submitted_goods['id']}/review", json=review_payload(), headers=users["vendor"]["headers"]
        )
        assert r.status_code == 403

    def test_review_replaces_items_and_records_note(self, client, users, submitted_goods):
        r = client.put(
            f"/api/bapb/{submitted_goods['id']}/review",
            json={
                "items": [{"name": "Cable", "quantity": 4, "unit": "pcs", "inspection_status": "tidak_sesuai",
                           "notes": "one damaged"}],
                "note": "One cable damaged in transit",
            },
            headers=users["pic"]["headers"],
        )
        assert r.status_code == 200
        data = r.json()
        assert data["status"] == "reviewed"
        assert data["reviewed_at"]
        assert data["inspector_note"] == "One cable damaged in transit"
        assert data["items"][0]["quantity"] == 4
        assert data["items"][0]["inspection_status"] == "tidak_sesuai"

    def test_review_requires_items(self, client, users, submitted_goods):
        h = users["pic"]["headers"]
        for body in ({}, {"note": "Looks fine"}, {"items": []}):
            r = client.put(f"/api/bapb/{submitted_goods['id']}/review", json=body, headers=h)
            assert r.status_code == 400
            assert r.json()["error"] == "validation_failed"

        r = client.get(f"/api/bapb/{submitted_goods['id']}", headers=h)
        assert r.json()["status"] == "submitted"
        assert [e["action"] for e in r.json()["timeline"]] == ["created", "submitted"]

    def test_free_text_items_can_be_sent_back(self, client, users):
        vendor, pic = users["vendor"]["headers"], users["pic"]["headers"]
        doc = client.post(
            "/api/bapb", json=goods_payload(items="1. Cable: 5 pcs\nLoose bolts"), headers=vendor
        ).json()
        items = doc["items"]
        assert items[1]["quantity"] == 0
        assert items[1]["notes"] == "non-standard format"

        r = client.put(f"/api/bapb/{doc['id']}", json={"items": items}, headers=vendor)
        assert r.status_code == 200, r.text
        assert r.json()["items"] == items

        upload_file(client, vendor, "bapb", doc["id"])
        client.patch(f"/api/bapb/{doc['id']}/submit", headers=vendor)
        r = client.put(f"/api/bapb/{doc['id']}/review", json=review_payload(items=items), headers=pic)
        assert r.status_code == 200, r.text
        assert r.json()["items"][1]["name"] == "Loose bolts"

    def test_reject_requires_reason(self, client, users, submitted_goods):
        h = users["pic"]["headers"]
        client.put(f"/api/bapb/{submitted_goods['id']}/review", json=review_payload(), headers=h)
        for body in ({}, {"reason": ""}, {"reason": "   "}):
            r = client.put(f"/api/bapb/{submitted_goods['id']}/reject", json=body, headers=h)
            assert r.status_code == 400
            assert r.json()["error"] == "validation_failed"

        r = client.get(f"/api/bapb/{submitted_goods['id']}", headers=h)
        assert r.json()["status"] == "reviewed"

    def test_reject_stores_reason_and_notifies(self, client, users, submitted_goods):
        h = users["pic"]["headers"]
        client.put(f"/api/bapb/{submitted_goods['id']}/review", json=review_payload(), headers=h)
        r = client.put(f"/api/bapb/{submitted_goods['id']}/reject", json={"reason": "Wrong cable type"}, headers=h)
        assert r.status_code == 200
        assert r.json()["status"] == "rejected"
        assert r.json()["rejection_reason"] == "Wrong cable type"

        notes = client.get("/api/notifications", headers=users["vendor"]["headers"]).json()
        assert notes[0]["type"] == "error"
        assert "Wrong cable type" in notes[0]["description"]

        mine = client.get("/api/notifications", headers=h).json()
        assert mine[0]["title"] == "Goods receipt rejected"

    def test_terminal_status_cannot_move(self, client, users, submitted_goods):
        h = users["pic"]["headers"]
        client.put(f"/api/bapb/{submitted_goods['id']}/review", json=review_payload(), headers=h)
        client.put(f"/api/bapb/{submitted_goods['id']}/approve", json={}, headers=h)
        r = client.put(f"/api/bapb/{submitted_goods['id']}/reject", json={"reason": "late"}, headers=h)
        assert r.status_code == 400
        assert r.json()["current_status"] == "approved"

    def test_delete_draft_cascades(self, client, users, draft_goods, data_dir):
        h = users["vendor"]["headers"]
        upload_file(client, h, "bapb", draft_goods["id"])
        stored = list((data_dir / "uploads" / "documents").iterdir())
        assert len(stored) == 1

        r = client.delete(f"/api/bapb/{draft_goods['id']}", headers=h)
        assert r.status_code == 200
        assert client.get(f"/api/bapb/{draft_goods['id']}", headers=h).status_code == 404
        assert client.get(f"/api/upload/bapb/{draft_goods['id']}/list", headers=h).json() == []
        history = client.get(f"/api/documents/history?kind=bapb&document_id={draft_goods['id']}", headers=h)
        assert history.json() == []
        assert list((data_dir / "uploads" / "documents").iterdir()) == []

    def test_delete_submitted_is_invalid_state(self, client, users, submitted_goods):
        r = client.delete(f"/api/bapb/{submitted_goods['id']}", headers=users["vendor"]["headers"])
        assert r.status_code == 400
        assert r.json()["error"] == "invalid_state"


class TestGoodsReceiptScenario:
    def test_full_approval_flow(self, client, users, push_sender):
        vendor = users["vendor"]["headers"]
        pic = users["pic"]["headers"]

        doc = client.post("/api/bapb", json=goods_payload("GR-001"), headers=vendor).json()
        assert doc["status"] == "draft"
        assert upload_file(client, vendor, "bapb", doc["id"]).status_code == 201
        assert client.patch(f"/api/bapb/{doc['id']}/submit", headers=vendor).status_code == 200
        r = client.put(
            f"/api/bapb/{doc['id']}/review",
            json={"items": [{"name": "Cable", "quantity": 5, "unit": "pcs", "inspection_status": "sesuai"}]},
            headers=pic,
        )
        assert r.status_code == 200
        r = client.put(f"/api/bapb/{doc['id']}/approve", json={"note": "All good"}, headers=pic)
        assert r.status_code == 200
        assert r.json()["status"] == "approved"
        assert r.json()["inspector_signed_at"]
        assert r.json()["approval_note"] == "All good"

        detail = client.get(f"/api/bapb/{doc['id']}", headers=vendor).json()
        assert [h["action"] for h in detail["timeline"]] == ["created", "submitted", "reviewed", "approved"]
        assert [h["status_before"] for h in detail["timeline"]] == [None, "draft", "submitted", "reviewed"]
        assert detail["last_inspector"]["actor_name"] == "Inspector Gudang"
        assert detail["last_inspector"]["action"] == "approved"
        assert len(detail["attachments"]) == 1

        vendor_notes = client.get("/api/notifications", headers=vendor).json()
        assert len(vendor_notes) == 3
