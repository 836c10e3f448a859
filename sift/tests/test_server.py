"""HTTP adapter tests: status mapping and the dump -> inbox -> event flow."""

from datetime import datetime, timezone
from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from sift.common.config import SiftConfig
from sift.common.schemas import InboxStatus, ProposedData
from sift.ingest import server

USER = {"X-User-Id": "user-1"}
START = datetime(2026, 3, 14, 18, 0, tzinfo=timezone.utc)


@pytest.fixture
def client(store):
    embeddings = Mock(is_available=False, mode="google")
    embeddings.embed.return_value = []
    llm = Mock(is_available=False)

    server.init_components(SiftConfig(), sift_store=store, embeddings=embeddings, llm=llm)
    yield TestClient(server.app)
    server.task_queue.shutdown(wait=True)


class TestBasics:
    def test_health(self, client):
        body = client.get("/health").json()
        assert body["status"] == "healthy"
        assert body["initialized"] is True
        assert body["llm_available"] is False

    def test_summary_without_model(self, client):
        response = client.get("/summary", headers=USER)
        assert response.status_code == 200
        assert response.json() == {"summary": "Could not generate summary."}

    def test_missing_user_header(self, client):
        assert client.get("/inbox").status_code == 401

    def test_unknown_ids_are_404(self, client):
        assert client.get("/dumps/nope", headers=USER).status_code == 404
        assert client.get("/inbox/nope", headers=USER).status_code == 404
        assert client.delete("/events/nope", headers=USER).status_code == 404
        assert client.post("/items/nope/archive", headers=USER).status_code == 404
        assert client.get("/people/nope/overview", headers=USER).status_code == 404


class TestDumps:
    def test_empty_dump_rejected(self, client):
        response = client.post("/dumps", json={"content_text": "   "}, headers=USER)
        assert response.status_code == 400
        assert "content_text" in response.json()["error"]

    def test_dump_is_stored_and_processed(self, client, store):
        response = client.post("/dumps", json={"content_text": "Dentist Tuesday 3pm"}, headers=USER)

        assert response.status_code == 201
        dump_id = response.json()["id"]
        assert "embedding" not in response.json()

        server.task_queue.shutdown(wait=True)
        # Model unavailable: processed with no outcome
        assert store.get_dump(dump_id).is_processed
        history = client.get("/history", headers=USER).json()
        assert [(h["id"], h["outcome"]) for h in history] == [(dump_id, "none")]


class TestInboxFlow:
    def test_confirm_needs_start(self, client, store):
        dump = store.create_dump("user-1", content_text="bake sale")
        entry = store.insert_inbox_entry(
            "user-1", dump.id, ProposedData(title="Bake sale"), 0.8, "missing_context", InboxStatus.NEEDS_INFO
        )

        missing = client.post(f"/inbox/{entry.id}/confirm", headers=USER)
        assert missing.status_code == 400

        confirmed = client.post(
            f"/inbox/{entry.id}/confirm", json={"start_time": START.isoformat()}, headers=USER
        )
        assert confirmed.status_code == 201
        assert confirmed.json()["origin_dump_id"] == dump.id

        assert client.get("/inbox", headers=USER).json() == []
        assert client.get("/inbox/stats", headers=USER).json()["approved"] == 1
        events = client.get("/events", headers=USER).json()
        assert [e["title"] for e in events] == ["Bake sale"]

    def test_dismiss(self, client, store):
        dump = store.create_dump("user-1", content_text="spam")
        entry = store.insert_inbox_entry(
            "user-1", dump.id, ProposedData(title="Spam"), 0.3, "low_confidence", InboxStatus.PENDING
        )

        assert client.post(f"/inbox/{entry.id}/dismiss", headers=USER).status_code == 200
        assert client.get(f"/inbox/{entry.id}", headers=USER).json()["status"] == "dismissed"


class TestPeopleAndItems:
    def test_rename_collision_is_409(self, client):
        mia = client.post("/people", json={"name": "Mia"}, headers=USER).json()
        client.post("/people", json={"name": "Leo"}, headers=USER)

        response = client.post("/people", json={"id": mia["id"], "name": "Leo"}, headers=USER)

        assert response.status_code == 409

    def test_item_lifecycle(self, client):
        created = client.post("/items", json={"title": "Sign form"}, headers=USER)
        assert created.status_code == 201
        item_id = created.json()["id"]

        done = client.post(f"/items/{item_id}/complete", headers=USER).json()
        assert done["archived_reason"] == "user_completed"
        assert client.get("/items", headers=USER).json() == []
        assert [i["id"] for i in client.get("/items/archive", headers=USER).json()] == [item_id]

        reopened = client.post(f"/items/{item_id}/complete", json={"completed": False}, headers=USER).json()
        assert reopened["archived_at"] is None

        today = client.get("/dashboard/today", headers=USER).json()
        assert [t["id"] for t in today["todos"]] == [item_id]

    def test_empty_title_rejected(self, client):
        assert client.post("/items", json={"title": ""}, headers=USER).status_code == 422
