import threading

import pytest

from conftest import upload_file
from docflow.errors import InvalidState
from docflow.models.enums import DocumentKind
from docflow.services import history_service, workflow

ITEMS = [{"name": "Cable", "quantity": 5, "unit": "pcs", "inspection_status": "sesuai"}]


def _race(test_db, count, action):
    """Run ``action(db)`` from ``count`` threads at once, one session each."""
    barrier = threading.Barrier(count)
    outcomes: list = []
    lock = threading.Lock()

    def worker():
        db = test_db()
        try:
            barrier.wait()
            result = action(db)
            outcome = ("ok", result)
        except Exception as exc:
            outcome = ("error", exc)
        finally:
            db.close()
        with lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=worker) for _ in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return outcomes


class TestConcurrentTransitions:
    def test_two_submits_exactly_one_wins(self, client, users, test_db, draft_goods):
        upload_file(client, users["vendor"]["headers"], "bapb", draft_goods["id"])
        vendor = users["vendor"]["actor"]

        outcomes = _race(
            test_db, 2,
            lambda db: workflow.submit(db, DocumentKind.GOODS, draft_goods["id"], vendor),
        )

        assert sorted(kind for kind, _ in outcomes) == ["error", "ok"]
        error = next(value for kind, value in outcomes if kind == "error")
        assert isinstance(error, InvalidState)
        assert error.current_status == "submitted"

        db = test_db()
        try:
            actions = [h.action for h in history_service.timeline(db, DocumentKind.GOODS, draft_goods["id"])]
        finally:
            db.close()
        assert actions == ["created", "submitted"]

    def test_approve_and_reject_race(self, client, users, test_db, draft_work):
        executive = users["direksi"]["actor"]
        calls = iter([
            lambda db: workflow.approve(db, DocumentKind.WORK, draft_work["id"], executive),
            lambda db: workflow.reject(db, DocumentKind.WORK, draft_work["id"], executive, "late"),
        ])
        call_lock = threading.Lock()

        def action(db):
            with call_lock:
                fn = next(calls)
            return fn(db)

        outcomes = _race(test_db, 2, action)
        assert sorted(kind for kind, _ in outcomes) == ["error", "ok"]
        winner = next(value for kind, value in outcomes if kind == "ok")
        loser = next(value for kind, value in outcomes if kind == "error")
        assert isinstance(loser, InvalidState)
        assert loser.current_status in ("approved_direksi", "rejected")

        r = client.get(f"/api/bapp/{draft_work['id']}", headers=users["direksi"]["headers"])
        assert r.json()["status"] == loser.current_status
        assert len(r.json()["timeline"]) == 2
        assert winner.pushes

    def test_stale_transition_names_current_status(self, client, users, test_db, submitted_goods):
        pic = users["pic"]["actor"]
        db = test_db()
        try:
            workflow.review(db, submitted_goods["id"], pic, ITEMS)
            with pytest.raises(InvalidState) as exc_info:
                workflow.review(db, submitted_goods["id"], pic, ITEMS)
        finally:
            db.close()
        assert exc_info.value.current_status == "reviewed"
