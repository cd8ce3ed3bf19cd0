"""Tests for the progression HTTP API (in-process, in-memory services)"""
import pytest

from progression.db.memory_store import InMemoryProgressStore
from progression.models.campus import CampusLocation
from progression.services.container import init_container


# ============================================
# Avatar
# ============================================

@pytest.mark.asyncio
async def test_award_xp_and_level_up(client):
    response = await client.post(
        "/api/v1/avatar/alice/xp",
        json={"amount": 50, "skill": "mathematics", "source": "quiz"},
    )
    assert response.status_code == 200
    assert response.json()["leveled_up"] is False

    response = await client.post(
        "/api/v1/avatar/alice/xp",
        json={"amount": 60, "skill": "mathematics", "source": "quiz"},
    )
    data = response.json()

    assert data["current_xp"] == 110
    assert data["leveled_up"] is True
    assert data["old_level"] == 1
    assert data["new_level"] == 2
    assert data["skill"] == "mathematics"


@pytest.mark.asyncio
async def test_award_reports_new_achievements(client):
    response = await client.post("/api/v1/avatar/alice/xp", json={"amount": 10})

    assert response.status_code == 200
    ids = [a["id"] for a in response.json()["new_achievements"]]
    assert "first_study_session" in ids


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [0, -10, 2.5, "ten"])
async def test_award_invalid_amount(client, amount):
    response = await client.post("/api/v1/avatar/alice/xp", json={"amount": amount})

    assert response.status_code == 400
    assert response.json()["error"] == "InvalidAmount"


@pytest.mark.asyncio
async def test_award_unknown_skill(client):
    response = await client.post(
        "/api/v1/avatar/alice/xp", json={"amount": 10, "skill": "alchemy"}
    )

    assert response.status_code == 400
    assert response.json()["error"] == "UnknownSkill"


@pytest.mark.asyncio
async def test_get_avatar_creates_on_first_read(client):
    response = await client.get("/api/v1/avatar/newbie")

    assert response.status_code == 200
    data = response.json()
    assert data["user_id"] == "newbie"
    assert data["level"] == 1
    assert data["coins"] == 100
    assert data["streak"]["current"] == 0


@pytest.mark.asyncio
async def test_update_appearance(client):
    response = await client.put(
        "/api/v1/avatar/alice/appearance",
        json={"appearance": {"hair": "blue"}, "display_name": "Alice"},
    )

    assert response.status_code == 200
    assert response.json()["appearance"] == {"hair": "blue"}
    assert response.json()["display_name"] == "Alice"


@pytest.mark.asyncio
async def test_record_activity_extends_streak(client):
    await client.post("/api/v1/avatar/alice/activity", json={"activity_date": "2024-03-04"})
    response = await client.post(
        "/api/v1/avatar/alice/activity", json={"activity_date": "2024-03-05"}
    )

    data = response.json()
    assert response.status_code == 200
    assert data["current_streak"] == 2
    assert data["streak_extended"] is True
    assert data["last_activity_date"] == "2024-03-05"


@pytest.mark.asyncio
async def test_xp_history(client):
    for amount in (10, 20, 30):
        await client.post("/api/v1/avatar/alice/xp", json={"amount": amount, "source": "quiz"})

    response = await client.get("/api/v1/avatar/alice/xp/history", params={"limit": 2})

    assert response.status_code == 200
    assert [tx["amount"] for tx in response.json()["transactions"]] == [30, 20]

    response = await client.get("/api/v1/avatar/alice/xp/history", params={"limit": 0})
    assert response.status_code == 422


# ============================================
# Achievements
# ============================================

@pytest.mark.asyncio
async def test_list_achievements_hides_secrets(client):
    response = await client.get("/api/v1/achievements")

    data = response.json()
    ids = {a["id"] for a in data["achievements"]}
    assert response.status_code == 200
    assert data["total"] == len(data["achievements"])
    assert "study_streak_7" in ids
    assert "early_bird" not in ids


@pytest.mark.asyncio
async def test_list_secret_achievements(client):
    response = await client.get("/api/v1/achievements", params={"type": "secret"})

    achievements = response.json()["achievements"]
    assert achievements
    assert all(a["secret"] for a in achievements)


@pytest.mark.asyncio
async def test_list_achievements_by_category(client):
    response = await client.get("/api/v1/achievements", params={"category": "streak"})
    assert {a["id"] for a in response.json()["achievements"]} == {"study_streak_7", "study_streak_30"}

    response = await client.get("/api/v1/achievements", params={"category": "cooking"})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_list_achievements_marks_earned(client):
    await client.post("/api/v1/avatar/alice/xp", json={"amount": 10})

    response = await client.get("/api/v1/achievements", params={"user_id": "alice"})

    by_id = {a["id"]: a for a in response.json()["achievements"]}
    assert by_id["first_study_session"]["earned"] is True
    assert by_id["first_study_session"]["earned_at"] is not None
    assert by_id["study_streak_7"]["earned"] is False


# ============================================
# Leaderboard
# ============================================

@pytest.mark.asyncio
async def test_leaderboard_overall_and_rank(client):
    await client.post("/api/v1/avatar/alice/xp", json={"amount": 300, "source": "quiz"})
    await client.post(
        "/api/v1/avatar/bob/xp", json={"amount": 100, "skill": "coding", "source": "quiz"}
    )

    response = await client.get("/api/v1/leaderboard")
    entries = response.json()["entries"]

    assert [(e["rank"], e["user_id"]) for e in entries] == [(1, "alice"), (2, "bob")]

    rank = await client.get("/api/v1/leaderboard/rank/bob")
    assert rank.json()["rank"] == 2

    missing = await client.get("/api/v1/leaderboard/rank/nobody")
    assert missing.json()["rank"] is None


@pytest.mark.asyncio
async def test_leaderboard_by_skill(client):
    await client.post("/api/v1/avatar/alice/xp", json={"amount": 300, "source": "quiz"})
    await client.post(
        "/api/v1/avatar/bob/xp", json={"amount": 100, "skill": "coding", "source": "quiz"}
    )

    response = await client.get("/api/v1/leaderboard", params={"type": "skill", "skill": "coding"})

    assert response.json()["scope"] == "coding"
    assert [e["user_id"] for e in response.json()["entries"]] == ["bob"]


@pytest.mark.asyncio
async def test_leaderboard_bad_scope(client):
    assert (await client.get("/api/v1/leaderboard", params={"type": "skill"})).status_code == 400
    assert (await client.get("/api/v1/leaderboard", params={"type": "weekly"})).status_code == 400
    assert (
        await client.get("/api/v1/leaderboard", params={"type": "skill", "skill": "alchemy"})
    ).status_code == 400


# ============================================
# Campus
# ============================================

@pytest.mark.asyncio
async def test_list_locations(client):
    response = await client.get("/api/v1/campus/locations")
    ids = {loc["id"] for loc in response.json()["locations"]}
    assert "science_lab" in ids

    response = await client.get("/api/v1/campus/locations", params={"user_id": "alice"})
    ids = {loc["id"] for loc in response.json()["locations"]}
    assert "science_lab" not in ids


@pytest.mark.asyncio
async def test_join_and_leave_location(client):
    response = await client.post(
        "/api/v1/campus/locations/library/join", json={"user_id": "alice", "display_name": "Alice"}
    )

    data = response.json()
    assert response.status_code == 200
    assert data["location"]["occupancy"] == 1
    assert data["location"]["occupants"][0]["display_name"] == "Alice"
    assert [a["id"] for a in data["new_achievements"]] == ["campus_newcomer"]

    response = await client.post("/api/v1/campus/locations/library/leave", json={"user_id": "alice"})
    assert response.json()["left"] is True

    response = await client.post("/api/v1/campus/locations/library/leave", json={"user_id": "alice"})
    assert response.json()["left"] is False


@pytest.mark.asyncio
async def test_join_errors(client):
    response = await client.post("/api/v1/campus/locations/roof/join", json={"user_id": "alice"})
    assert response.status_code == 404

    response = await client.post(
        "/api/v1/campus/locations/science_lab/join", json={"user_id": "alice"}
    )
    assert response.status_code == 403
    assert response.json()["error"] == "AccessDenied"


@pytest.mark.asyncio
async def test_join_full_location(client):
    init_container(
        InMemoryProgressStore(),
        locations=[CampusLocation(id="booth", name="Booth", description="", type="room", capacity=1)],
    )

    first = await client.post("/api/v1/campus/locations/booth/join", json={"user_id": "alice"})
    second = await client.post("/api/v1/campus/locations/booth/join", json={"user_id": "bob"})

    assert first.status_code == 200
    assert second.status_code == 409
    assert second.json()["error"] == "CapacityExceeded"


@pytest.mark.asyncio
async def test_heartbeat(client):
    response = await client.post("/api/v1/campus/heartbeat", json={"user_id": "alice"})
    assert response.json()["present"] is False

    await client.post("/api/v1/campus/locations/garden/join", json={"user_id": "alice"})
    response = await client.post("/api/v1/campus/heartbeat", json={"user_id": "alice"})

    assert response.json() == {"user_id": "alice", "location_id": "garden", "present": True}


@pytest.mark.asyncio
async def test_complete_activity(client):
    url = "/api/v1/campus/locations/library/activities/focused_study"

    response = await client.post(url, json={"user_id": "alice"})
    assert response.status_code == 409

    await client.post("/api/v1/campus/locations/library/join", json={"user_id": "alice"})
    response = await client.post(url, json={"user_id": "alice"})

    assert response.status_code == 200
    assert response.json()["xp_awarded"] == 50
    # 25 XP from the campus_newcomer reward plus the activity
    assert response.json()["current_xp"] == 75

    response = await client.post(
        "/api/v1/campus/locations/library/activities/juggling", json={"user_id": "alice"}
    )
    assert response.status_code == 404


# ============================================
# Service
# ============================================

@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["store"] == "connected"


@pytest.mark.asyncio
async def test_metrics(client):
    await client.post("/api/v1/avatar/alice/xp", json={"amount": 10, "source": "quiz"})

    response = await client.get("/metrics")

    assert response.status_code == 200
    assert "progression_xp_awarded_total" in response.text
