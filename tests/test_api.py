import asyncio
from datetime import datetime, timedelta

import httpx
import pytest
from fastapi.testclient import TestClient

import main
from config import EngineConfig
from models import AppState, SkillTree

client = TestClient(main.app)


@pytest.fixture(autouse=True)
def fresh_state(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(main.supa, "load_state", lambda *args, **kwargs: None)
    monkeypatch.setattr(main.supa, "save_state", lambda *args, **kwargs: None)
    monkeypatch.setattr(main.supa, "delete_state", lambda *args, **kwargs: None)
    monkeypatch.setattr(main, "_state", None)
    monkeypatch.setattr(main, "_config", EngineConfig())


def test_health() -> None:
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "healthy", "service": "pixelquest"}


def test_state_is_reconciled_on_first_read() -> None:
    data = client.get("/state").json()
    assert len(data["skills"]["nodes"]) == 30
    assert len(data["challenges"]["challenges"]) == 3
    assert data["last_processed_date"] is not None


def test_reward_calculation() -> None:
    resp = client.post("/reward", json={"difficulty": "hard", "rarity": "rare"})
    assert resp.json() == {"xp": 38, "coins": 19}


def test_reward_validation() -> None:
    assert client.post("/reward", json={"difficulty": "impossible", "rarity": "rare"}).status_code == 422


def test_level_lookup() -> None:
    data = client.get("/level/100").json()
    assert data["level"] == 2
    assert data["current_level_xp"] == 0
    assert data["role"] == "Novice"
    assert client.get("/level/-1").status_code == 422


def test_task_lifecycle() -> None:
    task = client.post("/tasks", json={"title": "Write report"}).json()
    assert task["xp_reward"] == 10

    resp = client.post(f"/tasks/{task['id']}/complete")
    assert resp.status_code == 200
    body = resp.json()
    assert body["reward"] == {"xp": 10, "coins": 5}
    assert body["level"] == 1
    assert body["new_achievements"] == ["first_quest"]

    state = client.get("/state").json()
    assert state["profile"]["total_xp"] == 10
    assert state["inventory"]["coins"] == 5

    again = client.post(f"/tasks/{task['id']}/complete")
    assert again.status_code == 409
    assert again.json()["detail"]["reason"] == "already_completed"


def test_complete_unknown_task() -> None:
    resp = client.post("/tasks/missing/complete")
    assert resp.status_code == 404
    assert resp.json()["detail"]["reason"] == "not_found"


def test_blank_task_title() -> None:
    assert client.post("/tasks", json={"title": "   "}).status_code == 422


def test_undo_task_completion() -> None:
    task = client.post("/tasks", json={"title": "Write report"}).json()
    client.post(f"/tasks/{task['id']}/complete")

    resp = client.post("/undo")
    assert resp.json()["type"] == "task-complete"

    state = client.get("/state").json()
    assert state["profile"]["total_xp"] == 0
    assert state["inventory"]["coins"] == 0
    assert state["tasks"][0]["status"] == "active"


def test_undo_delete() -> None:
    task = client.post("/tasks", json={"title": "Write report"}).json()
    assert client.delete(f"/tasks/{task['id']}").status_code == 200
    assert client.get("/state").json()["tasks"] == []

    client.post("/undo")
    assert [t["id"] for t in client.get("/state").json()["tasks"]] == [task["id"]]
    assert client.post("/undo").status_code == 404


def test_habit_completion_pays_once_per_day() -> None:
    habit = client.post("/habits", json={"title": "Read"}).json()
    first = client.post(f"/habits/{habit['id']}/complete").json()
    assert first["reward"] == {"xp": 11, "coins": 5}
    assert first["habit"]["current_streak"] == 1

    second = client.post(f"/habits/{habit['id']}/complete").json()
    assert second["reward"] == {"xp": 0, "coins": 0}


def test_habit_miss_is_undoable() -> None:
    habit = client.post("/habits", json={"title": "Read"}).json()
    missed = client.post(f"/habits/{habit['id']}/miss").json()
    assert missed["total_misses"] == 1

    client.post("/undo")
    assert client.get("/state").json()["habits"][0]["total_misses"] == 0


def test_unknown_habit() -> None:
    assert client.post("/habits/missing/complete").status_code == 404


def test_skill_unlock_without_points() -> None:
    resp = client.post("/skills/tm-1/unlock")
    assert resp.status_code == 409
    assert resp.json()["detail"] == {"reason": "insufficient_points", "message": "Not enough skill points"}
    assert client.post("/skills/zz-9/unlock").status_code == 404


def test_shop_purchase_without_coins() -> None:
    resp = client.post("/shop/streak-freeze/purchase")
    assert resp.status_code == 409
    assert resp.json()["detail"]["reason"] == "insufficient_coins"
    assert client.post("/shop/dragon/purchase").status_code == 404
    assert client.post("/shop/streak-freeze/use").status_code == 404


def test_burnout_update() -> None:
    report = client.put("/burnout", json={"overwork": 100}).json()
    assert report["level"] == 40
    assert client.put("/burnout", json={"overwork": 150}).status_code == 422


def test_focus_session_lifecycle() -> None:
    assert client.post("/focus/end").status_code == 409

    assert client.post("/focus/start", json={"planned_minutes": 25}).status_code == 200
    assert client.post("/focus/start", json={"planned_minutes": 25}).status_code == 409

    session = client.post("/focus/distraction", json={"duration_minutes": 5}).json()
    assert session["focus_quality"] == 90

    assert client.post("/focus/cancel").json() == {"status": "cancelled"}
    assert client.get("/state").json()["active_focus"] is None
    assert client.post("/focus/cancel").json() == {"status": "idle"}


def test_focus_end_records_session() -> None:
    client.post("/focus/start", json={"planned_minutes": 25})
    body = client.post("/focus/end").json()
    assert body["streak"]["current_streak"] == 1
    assert len(client.get("/state").json()["focus_sessions"]) == 1


def test_challenges_and_report() -> None:
    assert len(client.get("/challenges").json()["challenges"]) == 3
    report = client.get("/report/weekly").json()
    assert report["total_tasks"] == 0


def test_companion_feed() -> None:
    companion = client.post("/companion/feed", json={"energy": 10}).json()
    assert companion["energy"] == 100
    assert companion["happiness"] == 75
    assert companion["mood"] == "happy"


def test_config_update() -> None:
    assert client.get("/config").json()["undo_window_seconds"] == 30
    updated = client.put("/config", json={"undo_window_seconds": 60}).json()
    assert updated["undo_window_seconds"] == 60
    assert client.put("/config", json={"bogus": 1}).status_code == 400


def test_undo_task_completion_reverses_stats_wallet_and_board() -> None:
    task = client.post("/tasks", json={"title": "Write report"}).json()
    client.post(f"/tasks/{task['id']}/complete")
    client.post("/undo")

    state = client.get("/state").json()
    day = state["daily_stats"][-1]
    assert (day["tasks_completed"], day["xp_earned"], day["coins_earned"]) == (0, 0, 0)
    assert [t["kind"] for t in state["inventory"]["transactions"]] == ["earn", "revoke"]
    assert state["inventory"]["transactions"][-1]["amount"] == 5
    assert state["companion"]["evolution_points"] == 0
    assert state["companion"]["total_tasks_witnessed"] == 0
    assert all(c["progress"] == 0 for c in state["challenges"]["challenges"])
    assert state["challenges"]["completed_count"] == 0


def test_started_task_earns_time_bonus(monkeypatch: pytest.MonkeyPatch) -> None:
    clock = {"now": datetime(2024, 1, 15, 9, 0)}
    monkeypatch.setattr(main, "_now", lambda: clock["now"])

    task = client.post("/tasks", json={"title": "Draft", "estimated_minutes": 60}).json()
    started = client.post(f"/tasks/{task['id']}/start").json()
    assert started["started_at"] == "2024-01-15T09:00:00"

    clock["now"] += timedelta(minutes=30)
    body = client.post(f"/tasks/{task['id']}/complete").json()
    assert body["reward"] == {"xp": 12, "coins": 6}
    assert client.post("/tasks/missing/start").status_code == 404


def test_blocked_task_cannot_be_completed() -> None:
    first = client.post("/tasks", json={"title": "First"}).json()
    second = client.post("/tasks", json={"title": "Second"}).json()

    blocked = client.post(f"/tasks/{second['id']}/dependencies", json={"depends_on": first["id"]}).json()
    assert blocked["status"] == "blocked"

    resp = client.post(f"/tasks/{second['id']}/complete")
    assert resp.status_code == 409
    assert resp.json()["detail"]["reason"] == "blocked"

    client.post(f"/tasks/{first['id']}/complete")
    assert client.post(f"/tasks/{second['id']}/complete").status_code == 200


def test_dependency_validation() -> None:
    task = client.post("/tasks", json={"title": "Solo"}).json()
    assert client.post(f"/tasks/{task['id']}/dependencies", json={"depends_on": task["id"]}).status_code == 422
    assert client.post(f"/tasks/{task['id']}/dependencies", json={"depends_on": "missing"}).status_code == 404


def test_complete_subtask() -> None:
    task = client.post("/tasks", json={"title": "Essay", "subtasks": ["Outline", "Draft"]}).json()
    outline = task["subtasks"][0]["id"]

    updated = client.post(f"/tasks/{task['id']}/subtasks/{outline}/complete").json()
    assert [s["completed"] for s in updated["subtasks"]] == [True, False]
    assert client.post(f"/tasks/{task['id']}/subtasks/missing/complete").status_code == 404


def test_undone_miss_keeps_a_later_completion() -> None:
    habit = client.post("/habits", json={"title": "Read"}).json()
    client.post(f"/habits/{habit['id']}/miss")
    first = client.post(f"/habits/{habit['id']}/complete").json()
    assert first["reward"] == {"xp": 11, "coins": 5}

    assert client.post("/undo").json()["type"] == "habit-miss"
    second = client.post(f"/habits/{habit['id']}/complete").json()
    assert second["reward"] == {"xp": 0, "coins": 0}

    state = client.get("/state").json()
    assert state["profile"]["total_xp"] == 11
    assert len(state["habits"][0]["completion_history"]) == 1


def test_undone_miss_clears_the_day_stat() -> None:
    habit = client.post("/habits", json={"title": "Read"}).json()
    client.post(f"/habits/{habit['id']}/miss")
    client.post("/undo")
    assert client.get("/state").json()["daily_stats"][-1]["habits_missed"] == 0


def test_skill_unlock_is_not_undoable(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(main, "_state", AppState(skills=SkillTree(skill_points=5)))

    assert client.post("/skills/tm-1/unlock").status_code == 200
    assert client.post("/undo").status_code == 404

    skills = client.get("/state").json()["skills"]
    assert "tm-1" in skills["unlocked_nodes"]
    assert skills["skill_points"] == 4


def test_project_milestones_feed_progression() -> None:
    project = client.post("/projects", json={
        "title": "Launch",
        "milestones": [{"title": "Design", "xp_reward": 50}, {"title": "Build", "xp_reward": 100}],
    }).json()
    design, build = (m["id"] for m in project["milestones"])
    base = f"/projects/{project['id']}/milestones"

    resp = client.post(f"{base}/{build}/complete")
    assert resp.status_code == 409
    assert resp.json()["detail"]["reason"] == "out_of_order"

    first = client.post(f"{base}/{design}/complete").json()
    assert first["reward"] == {"xp": 50, "coins": 25}
    assert first["project"]["progress"] == 50
    assert first["project_completed"] is False

    last = client.post(f"{base}/{build}/complete").json()
    assert last["reward"] == {"xp": 100, "coins": 50}
    assert last["project_completed"] is True
    assert last["level"] == 2

    state = client.get("/state").json()
    assert state["profile"]["total_xp"] == 150
    assert state["daily_stats"][-1]["xp_earned"] == 150
    assert client.get("/projects").json()[0]["progress"] == 100


def test_unknown_project_or_milestone() -> None:
    project = client.post("/projects", json={"title": "Launch", "milestones": [{"title": "Design"}]}).json()
    assert client.post(f"/projects/{project['id']}/milestones/missing/complete").status_code == 404
    assert client.post(f"/projects/missing/milestones/{project['milestones'][0]['id']}/complete").status_code == 404


def test_overlapping_completions_both_commit() -> None:
    first = client.post("/tasks", json={"title": "First"}).json()
    second = client.post("/tasks", json={"title": "Second"}).json()

    async def complete_both():
        transport = httpx.ASGITransport(app=main.app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
            return await asyncio.gather(
                ac.post(f"/tasks/{first['id']}/complete"),
                ac.post(f"/tasks/{second['id']}/complete"),
            )

    responses = asyncio.run(complete_both())
    assert [r.status_code for r in responses] == [200, 200]
    assert client.get("/state").json()["profile"]["total_xp"] == 20
