"""플레이어 API 통합 테스트

TestClient + MemoryStore. lifespan으로 서비스 그래프를 띄운다.
"""

import pytest
from fastapi.testclient import TestClient

from src.config import Settings
from src.core.errors import TransientStoreError
from src.db.store import MemoryStore
from src.main import create_app

TEST_SETTINGS = Settings(
    UI_FLUSH_DELAY_SECONDS=0.01,
    SAVE_SWEEP_INTERVAL_SECONDS=3600,
    STARTING_CURRENCY=500,
    INVENTORY_LIMIT=5,
)


@pytest.fixture()
def client():
    """TestClient + 인메모리 저장소"""
    app = create_app(store=MemoryStore(), config=TEST_SETTINGS)
    with TestClient(app) as c:
        yield c


def _statuses(client, actor_id):
    notes = client.get(f"/players/{actor_id}/notifications").json()
    return [n["payload"] for n in notes if n["kind"] == "status"]


class TestConnect:
    def test_new_player(self, client):
        resp = client.post("/players/1/connect")
        assert resp.status_code == 200
        assert resp.json() == {"actor_id": 1, "fresh": True, "claimed": 0, "reclaimed": 0}

        page = client.get("/players/1/inventory").json()
        assert page["TotalItems"] == 2
        assert {i["item_id"] for i in page["Inventory"]} == {"potion001", "sword001"}

    def test_disconnect_and_reconnect(self, client):
        client.post("/players/1/connect")
        client.post("/players/1/items", json={"item_id": "ore001"})

        resp = client.post("/players/1/disconnect")
        assert resp.json() == {"actor_id": 1, "saved": True}
        assert client.get("/players/1/inventory").status_code == 409

        resp = client.post("/players/1/connect")
        assert resp.json()["fresh"] is False
        page = client.get("/players/1/inventory").json()
        assert {i["item_id"] for i in page["Inventory"]} == {"potion001", "sword001", "ore001"}

    def test_disconnect_unknown(self, client):
        assert client.post("/players/9/disconnect").json()["saved"] is False


class TestItems:
    def test_pickup_stacks(self, client):
        client.post("/players/1/connect")
        resp = client.post("/players/1/items", json={"item_id": "potion001"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert data["item"]["stack_count"] == 2
        assert data["item_count"] == 3

    def test_sword_stack_full(self, client):
        client.post("/players/1/connect")
        resp = client.post("/players/1/items", json={"item_id": "sword001"})
        assert resp.status_code == 409
        assert resp.json()["detail"].startswith("StackFull")

    def test_inventory_full(self, client):
        client.post("/players/1/connect")
        for _ in range(3):
            assert client.post("/players/1/items", json={"item_id": "ore001"}).status_code == 200
        resp = client.post("/players/1/items", json={"item_id": "ore001"})
        assert resp.status_code == 409
        assert resp.json()["detail"].startswith("InventoryFull")

    def test_remove(self, client):
        client.post("/players/1/connect")
        client.get("/players/1/notifications")
        resp = client.delete("/players/1/items/sword001")
        assert resp.json()["success"] is True
        assert resp.json()["item_count"] == 1
        assert "Item removed: Sword" in _statuses(client, 1)

    def test_remove_absent(self, client):
        client.post("/players/1/connect")
        resp = client.delete("/players/1/items/gem001")
        assert resp.status_code == 200
        assert resp.json()["success"] is False
        assert resp.json()["item_count"] == 2

    def test_use(self, client):
        client.post("/players/1/connect")
        first = client.post("/players/1/items/potion001/use").json()
        second = client.post("/players/1/items/potion001/use").json()
        assert first["success"] is True
        assert second["success"] is False
        assert second["message"] == "Item broken"

    def test_use_missing(self, client):
        client.post("/players/1/connect")
        assert client.post("/players/1/items/gem001/use").status_code == 400

    def test_offline_player(self, client):
        resp = client.post("/players/1/items", json={"item_id": "ore001"})
        assert resp.status_code == 409
        assert resp.json()["detail"].startswith("ActorOffline")


class TestInventoryPage:
    def test_pagination(self, client):
        client.post("/players/1/connect")
        client.post("/players/1/items", json={"item_id": "ore001"})
        client.post("/players/1/items", json={"item_id": "gem001"})

        page = client.get("/players/1/inventory", params={"page": 2, "pageSize": 3}).json()
        assert page["Page"] == 2
        assert page["PageSize"] == 3
        assert page["TotalItems"] == 4
        assert [i["item_id"] for i in page["Inventory"]] == ["gem001"]

    def test_invalid_page(self, client):
        client.post("/players/1/connect")
        assert client.get("/players/1/inventory", params={"page": 0}).status_code == 422


class TestNotifications:
    def test_drain(self, client):
        client.post("/players/1/connect")
        notes = client.get("/players/1/notifications").json()
        assert notes[0] == {"kind": "status", "payload": "Inventory loaded.", "data": {}}
        assert client.get("/players/1/notifications").json() == []


class TestSessionErrors:
    def test_connect_store_failure_maps_to_503(self, client, monkeypatch):
        async def failing_connect(actor_id):
            raise TransientStoreError("store down")

        monkeypatch.setattr(client.app.state.session_service, "connect", failing_connect)
        resp = client.post("/players/1/connect")
        assert resp.status_code == 503
        assert resp.json()["detail"].startswith("TransientStoreError")
