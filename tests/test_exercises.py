import pytest
import uuid
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.enums import Role
from app.models.fitness import Exercise

from conftest import create_user, login_headers

EXERCISES_URL = f"{settings.API_V1_STR}/exercises"


def _payload(name: str = "Push Up", categories=None, levels=None) -> dict:
    return {
        "name": name,
        "description": "Classic bodyweight press",
        "categories": categories or ["strength"],
        "levels": levels
        or [
            {"video": "https://www.youtube.com/watch?v=IODxDxX7oi4", "repetitions": 10, "weight": 0},
            {"video": "https://youtu.be/IODxDxX7oi4", "repetitions": 15, "weight": 5},
        ],
    }


@pytest.mark.asyncio
async def test_create_and_get_exercise(client: AsyncClient, db_session: AsyncSession, trainer_token_headers):
    response = await client.post(EXERCISES_URL, json=_payload(), headers=trainer_token_headers)
    assert response.status_code == 200, response.text
    exercise_id = response.json()["data"]["id"]

    detail = await client.get(f"{EXERCISES_URL}/{exercise_id}", headers=trainer_token_headers)
    assert detail.status_code == 200
    data = detail.json()["data"]
    assert data["name"] == "Push Up"
    assert data["categories"] == ["strength"]
    assert [level["level"] for level in data["levels"]] == [1, 2]
    assert data["levels"][1]["repetitions"] == 15


@pytest.mark.asyncio
async def test_create_exercise_validation(client: AsyncClient, trainer_token_headers):
    blank_name = await client.post(EXERCISES_URL, json=_payload(name="  "), headers=trainer_token_headers)
    assert blank_name.status_code == 422

    no_levels = _payload()
    no_levels["levels"] = []
    response = await client.post(EXERCISES_URL, json=no_levels, headers=trainer_token_headers)
    assert response.status_code == 422

    no_categories = _payload()
    no_categories["categories"] = []
    response = await client.post(EXERCISES_URL, json=no_categories, headers=trainer_token_headers)
    assert response.status_code == 422

    bad_video = _payload(levels=[{"video": "https://vimeo.com/123", "repetitions": 5, "weight": 0}])
    response = await client.post(EXERCISES_URL, json=bad_video, headers=trainer_token_headers)
    assert response.status_code == 422

    unknown_category = _payload(categories=["juggling"])
    response = await client.post(EXERCISES_URL, json=unknown_category, headers=trainer_token_headers)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_list_exercises_filters(client: AsyncClient, trainer_token_headers):
    await client.post(EXERCISES_URL, json=_payload("Push Up", ["strength"]), headers=trainer_token_headers)
    await client.post(EXERCISES_URL, json=_payload("Plank", ["core", "balance"]), headers=trainer_token_headers)
    await client.post(EXERCISES_URL, json=_payload("Rowing", ["cardio"]), headers=trainer_token_headers)

    everything = await client.get(EXERCISES_URL, headers=trainer_token_headers)
    assert [e["name"] for e in everything.json()["data"]] == ["Plank", "Push Up", "Rowing"]

    searched = await client.get(EXERCISES_URL, params={"search": "PUSH"}, headers=trainer_token_headers)
    assert [e["name"] for e in searched.json()["data"]] == ["Push Up"]

    by_category = await client.get(
        EXERCISES_URL,
        params=[("categories", "cardio"), ("categories", "balance")],
        headers=trainer_token_headers,
    )
    assert sorted(e["name"] for e in by_category.json()["data"]) == ["Plank", "Rowing"]


@pytest.mark.asyncio
async def test_search_treats_wildcards_literally(client: AsyncClient, trainer_token_headers):
    await client.post(EXERCISES_URL, json=_payload("Squat"), headers=trainer_token_headers)
    await client.post(EXERCISES_URL, json=_payload("Row"), headers=trainer_token_headers)
    await client.post(EXERCISES_URL, json=_payload("Farmer_Walk 100%"), headers=trainer_token_headers)

    for term in ("_", "%", "r_w"):
        response = await client.get(EXERCISES_URL, params={"search": term}, headers=trainer_token_headers)
        assert [e["name"] for e in response.json()["data"]] == ["Farmer_Walk 100%"], term


@pytest.mark.asyncio
async def test_list_categories(client: AsyncClient, trainer_token_headers):
    response = await client.get(f"{EXERCISES_URL}/categories", headers=trainer_token_headers)
    assert response.status_code == 200
    values = [option["value"] for option in response.json()["data"]]
    assert values == ["strength", "cardio", "flexibility", "balance", "core"]


@pytest.mark.asyncio
async def test_update_exercise_requires_owner(client: AsyncClient, db_session: AsyncSession, trainer_token_headers):
    created = await client.post(EXERCISES_URL, json=_payload(), headers=trainer_token_headers)
    exercise_id = created.json()["data"]["id"]

    await create_user(db_session, "other.trainer@gym.com", Role.TRAINER)
    other_headers = await login_headers(client, "other.trainer@gym.com")
    forbidden = await client.put(
        f"{EXERCISES_URL}/{exercise_id}",
        json=_payload(name="Hijacked"),
        headers=other_headers,
    )
    assert forbidden.status_code == 403

    updated = await client.put(
        f"{EXERCISES_URL}/{exercise_id}",
        json=_payload(name="Incline Push Up", categories=["strength", "core"]),
        headers=trainer_token_headers,
    )
    assert updated.status_code == 200
    assert updated.json()["data"]["name"] == "Incline Push Up"
    assert updated.json()["data"]["categories"] == ["strength", "core"]


@pytest.mark.asyncio
async def test_delete_exercise(client: AsyncClient, db_session: AsyncSession, trainer_token_headers):
    created = await client.post(EXERCISES_URL, json=_payload(), headers=trainer_token_headers)
    exercise_id = created.json()["data"]["id"]

    response = await client.delete(f"{EXERCISES_URL}/{exercise_id}", headers=trainer_token_headers)
    assert response.status_code == 200
    assert await db_session.get(Exercise, uuid.UUID(exercise_id)) is None

    missing = await client.get(f"{EXERCISES_URL}/{exercise_id}", headers=trainer_token_headers)
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_client_cannot_manage_exercises(client: AsyncClient, db_session: AsyncSession):
    await create_user(db_session, "client.only@example.com", Role.CLIENT)
    headers = await login_headers(client, "client.only@example.com")

    response = await client.get(EXERCISES_URL, headers=headers)
    assert response.status_code == 403

    response = await client.post(EXERCISES_URL, json=_payload(), headers=headers)
    assert response.status_code == 403
