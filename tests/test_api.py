"""Tests for the habit API routes."""
import json

import pytest
from apscheduler.schedulers.background import BackgroundScheduler
from fastapi.testclient import TestClient

import db
import main
from db import BackgroundWriter, MemoryStore
from logic import DAYS, HABITS_KEY, HabitStore


@pytest.fixture
def kv():
    return MemoryStore()


@pytest.fixture
def client(kv):
    s = HabitStore(kv)
    s.initialize()
    main.app.dependency_overrides[main.get_store] = lambda: s
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


def test_health(client):
    assert client.get("/health").json()["status"] == "healthy"
    assert client.get("/").json()["status"] == "healthy"


def test_days(client):
    assert client.get("/days").json() == {"days": list(DAYS)}


def test_list_starts_empty(client):
    resp = client.post("/habit/list")
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "habits": [], "days": list(DAYS)}


def test_add_and_list(client, kv):
    data = client.post("/habit/add", json={"name": "  Read "}).json()
    assert data["success"]
    assert data["habits"] == [{"name": "Read", "completed": {}}]
    assert json.loads(kv.get(HABITS_KEY)) == data["habits"]

    habits = client.post("/habit/list").json()["habits"]
    assert [h["name"] for h in habits] == ["Read"]


def test_add_rejections_are_not_http_errors(client):
    client.post("/habit/add", json={"name": "Read"})
    for name in ["Read", "", "   "]:
        resp = client.post("/habit/add", json={"name": name})
        assert resp.status_code == 200
        assert resp.json()["success"] is False
        assert len(resp.json()["habits"]) == 1


def test_add_limit(client):
    for i in range(6):
        assert client.post("/habit/add", json={"name": f"H{i}"}).json()["success"]
    data = client.post("/habit/add", json={"name": "Overflow"}).json()
    assert data["success"] is False
    assert len(data["habits"]) == 6


def test_remove_is_idempotent(client):
    client.post("/habit/add", json={"name": "Read"})
    first = client.post("/habit/remove", json={"name": "Read"}).json()
    second = client.post("/habit/remove", json={"name": "Read"}).json()
    assert first == {"success": True, "removed": True, "habits": []}
    assert second == {"success": True, "removed": False, "habits": []}


def test_toggle(client):
    client.post("/habit/add", json={"name": "Meditate"})
    data = client.post("/habit/toggle", json={"name": "Meditate", "day": "Monday"}).json()
    assert data["success"]
    assert data["completed"] is True
    assert data["day"] == "Monday"
    assert data["habits"] == [{"name": "Meditate", "completed": {"Monday": True}}]

    data = client.post("/habit/toggle", json={"name": "Meditate", "day": "Monday"}).json()
    assert data["completed"] is False


def test_toggle_unknown_habit(client):
    data = client.post("/habit/toggle", json={"name": "Ghost", "day": "Friday"}).json()
    assert data["success"] is False
    assert data["habits"] == []


def test_toggle_rejects_unknown_day(client):
    client.post("/habit/add", json={"name": "Read"})
    resp = client.post("/habit/toggle", json={"name": "Read", "day": "Funday"})
    assert resp.status_code == 422


def test_weekly_summary(client):
    client.post("/habit/add", json={"name": "Read"})
    for day in DAYS:
        client.post("/habit/toggle", json={"name": "Read", "day": day})
    data = client.post("/habit/weekly-summary").json()
    assert data["success"]
    assert data["completion_pct"] == 100.0
    assert data["stars"] == 5
    assert data["total_cells"] == 7


def test_lifespan_loads_and_flushes(monkeypatch):
    kv = MemoryStore({HABITS_KEY: json.dumps([{"name": "Read", "completed": {"Monday": True}}])})
    scheduler = BackgroundScheduler()
    writer = BackgroundWriter(kv, scheduler)
    monkeypatch.setattr(main, "scheduler", scheduler)
    monkeypatch.setattr(main, "writer", writer)
    monkeypatch.setattr(main, "store", HabitStore(writer))

    with TestClient(main.app) as client:
        habits = client.post("/habit/list").json()["habits"]
        assert habits == [{"name": "Read", "completed": {"Monday": True}}]
        client.post("/habit/add", json={"name": "Walk"})
        client.post("/habit/toggle", json={"name": "Walk", "day": "Sunday"})

    assert not scheduler.running
    assert json.loads(kv.get(HABITS_KEY)) == [
        {"name": "Read", "completed": {"Monday": True}},
        {"name": "Walk", "completed": {"Sunday": True}},
    ]


def test_missing_supabase_credentials_fall_back_to_memory(monkeypatch, caplog):
    monkeypatch.setattr(db, "HABIT_STORE_BACKEND", "supabase")
    monkeypatch.setattr(db, "SUPABASE_URL", None)
    monkeypatch.setattr(db, "SUPABASE_KEY", None)

    backend = main.build_backend()
    assert isinstance(backend, MemoryStore)
    assert "Habit store backend supabase unavailable" in caplog.text
