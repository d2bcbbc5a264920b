import pytest
import uuid
from datetime import datetime, timedelta, timezone
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.coaching import Client, ClientInvitation, ClientTrainerRelationship, TrainerBrand
from app.models.enums import InvitationStatus, Role
from app.models.fitness import Exercise, Plan, PlanExercise, Series, TrainingSession

from conftest import create_linked_client, create_user, login_headers

PORTAL_URL = f"{settings.API_V1_STR}/client"


def _invitation(email: str, trainer_id, *, token: str, days: int = 7) -> ClientInvitation:
    return ClientInvitation(
        email=email,
        trainer_id=trainer_id,
        token=token,
        status=InvitationStatus.PENDING,
        expires_at=datetime.now(timezone.utc) + timedelta(days=days),
    )


async def _plan_with_session(db_session: AsyncSession, trainer, client_row: Client) -> tuple[Plan, TrainingSession]:
    exercise = Exercise(
        name="Lunge",
        categories=["strength"],
        levels=[
            {"level": 1, "video": "https://youtu.be/QOVaHwm-Q6U", "repetitions": 12, "weight": 0},
            {"level": 2, "video": "", "repetitions": 10, "weight": 8},
        ],
        created_by=trainer.id,
    )
    db_session.add(exercise)
    await db_session.flush()

    plan = Plan(id=uuid.uuid4(), name="Legs", month="2026-10", client_id=client_row.id, trainer_id=trainer.id)
    session = TrainingSession(client_id=client_row.id, name="Leg Day", order_index=0)
    series = Series(client_id=client_row.id, name="Block A", order_index=0)
    series.exercises = [
        PlanExercise(plan_id=plan.id, exercise_id=exercise.id, level=1, order_index=0),
        PlanExercise(plan_id=plan.id, exercise_id=exercise.id, level=2, order_index=1),
    ]
    session.series.append(series)
    plan.sessions.append(session)
    db_session.add(plan)
    await db_session.commit()
    return plan, session


@pytest.mark.asyncio
async def test_client_profile(client: AsyncClient, db_session: AsyncSession, trainer_user):
    client_row, user = await create_linked_client(db_session, trainer_user, "me.client@example.com")
    headers = await login_headers(client, user.email)

    response = await client.get(f"{PORTAL_URL}/me", headers=headers)
    assert response.status_code == 200
    assert response.json()["data"]["id"] == str(client_row.id)
    assert response.json()["data"]["trainer_id"] == str(trainer_user.id)


@pytest.mark.asyncio
async def test_client_without_profile_gets_404(client: AsyncClient, db_session: AsyncSession):
    await create_user(db_session, "orphan@example.com", Role.CLIENT)
    headers = await login_headers(client, "orphan@example.com")

    response = await client.get(f"{PORTAL_URL}/plans", headers=headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_trainer_cannot_use_client_portal(client: AsyncClient, trainer_token_headers):
    response = await client.get(f"{PORTAL_URL}/invitations", headers=trainer_token_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_pending_invitations_skip_expired_and_answered(
    client: AsyncClient, db_session: AsyncSession, trainer_user
):
    user = await create_user(db_session, "pending@example.com", Role.CLIENT)
    expired = _invitation(user.email, trainer_user.id, token="expired-token", days=-1)
    other_trainer = await create_user(db_session, "second.coach@gym.com", Role.TRAINER, "Second Coach")
    rejected = _invitation(user.email, other_trainer.id, token="rejected-token")
    rejected.status = InvitationStatus.REJECTED
    third_trainer = await create_user(db_session, "third.coach@gym.com", Role.TRAINER, "Third Coach")
    live = _invitation(user.email, third_trainer.id, token="live-token")
    db_session.add_all([expired, rejected, live])
    await db_session.commit()
    headers = await login_headers(client, user.email)

    response = await client.get(f"{PORTAL_URL}/invitations", headers=headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert [i["id"] for i in data] == [str(live.id)]
    assert data[0]["trainer_name"] == "Third Coach"


@pytest.mark.asyncio
async def test_accept_invitation_links_trainer(client: AsyncClient, db_session: AsyncSession, trainer_user):
    client_row, user = await create_linked_client(db_session, trainer_user, "accepting@example.com")
    second = await create_user(db_session, "extra.coach@gym.com", Role.TRAINER)
    invitation = _invitation(user.email, second.id, token="accept-token")
    db_session.add(invitation)
    await db_session.commit()
    headers = await login_headers(client, user.email)

    response = await client.post(f"{PORTAL_URL}/invitations/{invitation.id}/accept", headers=headers)
    assert response.status_code == 200, response.text
    assert response.json()["data"]["status"] == InvitationStatus.ACCEPTED.value
    assert response.json()["data"]["client_id"] == str(client_row.id)

    links = (
        await db_session.execute(
            select(ClientTrainerRelationship).where(ClientTrainerRelationship.client_id == client_row.id)
        )
    ).scalars().all()
    assert {link.trainer_id: link.is_primary for link in links} == {trainer_user.id: True, second.id: False}

    again = await client.post(f"{PORTAL_URL}/invitations/{invitation.id}/accept", headers=headers)
    assert again.status_code == 400


@pytest.mark.asyncio
async def test_accept_creates_client_record(client: AsyncClient, db_session: AsyncSession, trainer_user):
    user = await create_user(db_session, "fresh.client@example.com", Role.CLIENT)
    invitation = _invitation(user.email, trainer_user.id, token="fresh-token")
    db_session.add(invitation)
    await db_session.commit()
    headers = await login_headers(client, user.email)

    response = await client.post(f"{PORTAL_URL}/invitations/{invitation.id}/accept", headers=headers)
    assert response.status_code == 200

    client_row = (
        await db_session.execute(select(Client).where(Client.email == "fresh.client@example.com"))
    ).scalar_one()
    assert client_row.user_id == user.id
    assert client_row.trainer_id == trainer_user.id
    assert client_row.name == "fresh.client"


@pytest.mark.asyncio
async def test_accept_expired_or_foreign_invitation(client: AsyncClient, db_session: AsyncSession, trainer_user):
    user = await create_user(db_session, "late@example.com", Role.CLIENT)
    expired = _invitation(user.email, trainer_user.id, token="late-token", days=-2)
    foreign = _invitation("someone.else@example.com", trainer_user.id, token="foreign-token")
    db_session.add_all([expired, foreign])
    await db_session.commit()
    headers = await login_headers(client, user.email)

    response = await client.post(f"{PORTAL_URL}/invitations/{expired.id}/accept", headers=headers)
    assert response.status_code == 400
    assert response.json()["detail"] == "Invitation has expired"

    response = await client.post(f"{PORTAL_URL}/invitations/{foreign.id}/accept", headers=headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_reject_invitation(client: AsyncClient, db_session: AsyncSession, trainer_user):
    user = await create_user(db_session, "decliner@example.com", Role.CLIENT)
    invitation = _invitation(user.email, trainer_user.id, token="decline-token")
    db_session.add(invitation)
    await db_session.commit()
    headers = await login_headers(client, user.email)

    response = await client.post(f"{PORTAL_URL}/invitations/{invitation.id}/reject", headers=headers)
    assert response.status_code == 200
    assert response.json()["data"]["status"] == InvitationStatus.REJECTED.value
    await db_session.refresh(invitation)
    assert invitation.status == InvitationStatus.REJECTED

    again = await client.post(f"{PORTAL_URL}/invitations/{invitation.id}/reject", headers=headers)
    assert again.status_code == 400


@pytest.mark.asyncio
async def test_trainers_and_theme_selection(client: AsyncClient, db_session: AsyncSession, trainer_user):
    client_row, user = await create_linked_client(db_session, trainer_user, "themed@example.com")
    branded = await create_user(db_session, "branded.coach@gym.com", Role.TRAINER, "Alex Branded")
    db_session.add(TrainerBrand(trainer_id=branded.id, primary_color="#123456", logo_url="/static/logo.png"))
    db_session.add(ClientTrainerRelationship(client_id=client_row.id, trainer_id=branded.id, is_primary=False))
    await db_session.commit()
    headers = await login_headers(client, user.email)

    theme = await client.get(f"{PORTAL_URL}/theme", headers=headers)
    assert theme.json()["data"]["primary_color"] == "#9b87f5"

    trainers = await client.get(f"{PORTAL_URL}/trainers", headers=headers)
    assert trainers.status_code == 200
    data = trainers.json()["data"]
    assert [t["id"] for t in data] == [str(trainer_user.id), str(branded.id)]
    assert data[0]["is_primary"] is True
    assert data[1]["branding"]["primary_color"] == "#123456"

    selected = await client.put(f"{PORTAL_URL}/trainer", json={"trainer_id": str(branded.id)}, headers=headers)
    assert selected.status_code == 200
    assert selected.json()["data"]["logo_url"] == "/static/logo.png"

    theme = await client.get(f"{PORTAL_URL}/theme", headers=headers)
    assert theme.json()["data"]["primary_color"] == "#123456"
    assert theme.json()["data"]["secondary_color"] == "#E5DEFF"

    stranger = await create_user(db_session, "stranger.coach@gym.com", Role.TRAINER)
    rejected = await client.put(f"{PORTAL_URL}/trainer", json={"trainer_id": str(stranger.id)}, headers=headers)
    assert rejected.status_code == 400


@pytest.mark.asyncio
async def test_client_plans(client: AsyncClient, db_session: AsyncSession, trainer_user):
    client_row, user = await create_linked_client(db_session, trainer_user, "planned@example.com")
    plan, _ = await _plan_with_session(db_session, trainer_user, client_row)
    other_row, _ = await create_linked_client(db_session, trainer_user, "other.planned@example.com")
    other_plan, _ = await _plan_with_session(db_session, trainer_user, other_row)
    headers = await login_headers(client, user.email)

    listed = await client.get(f"{PORTAL_URL}/plans", headers=headers)
    assert listed.status_code == 200
    assert [p["id"] for p in listed.json()["data"]] == [str(plan.id)]

    detail = await client.get(f"{PORTAL_URL}/plans/{plan.id}", headers=headers)
    assert detail.status_code == 200
    assert len(detail.json()["data"]["exercises"]) == 2

    hidden = await client.get(f"{PORTAL_URL}/plans/{other_plan.id}", headers=headers)
    assert hidden.status_code == 404


@pytest.mark.asyncio
async def test_session_view_and_scheduling(client: AsyncClient, db_session: AsyncSession, trainer_user):
    client_row, user = await create_linked_client(db_session, trainer_user, "scheduled@example.com")
    plan, session = await _plan_with_session(db_session, trainer_user, client_row)
    headers = await login_headers(client, user.email)

    view = await client.get(f"{PORTAL_URL}/sessions/{session.id}", headers=headers)
    assert view.status_code == 200
    exercises = view.json()["data"]["series"][0]["exercises"]
    assert [e["level"] for e in exercises] == [1, 2]
    assert exercises[0]["video_url"] == "https://youtu.be/QOVaHwm-Q6U"
    assert exercises[0]["repetitions"] == 12
    assert exercises[1]["weight"] == 8

    empty = await client.get(f"{PORTAL_URL}/sessions/scheduled", headers=headers)
    assert empty.json()["data"] == []

    scheduled = await client.put(
        f"{PORTAL_URL}/sessions/{session.id}/schedule",
        json={"scheduled_date": "2026-11-03T09:30:00"},
        headers=headers,
    )
    assert scheduled.status_code == 200
    assert scheduled.json()["data"]["scheduled_date"].startswith("2026-11-03T09:30:00")

    listed = await client.get(f"{PORTAL_URL}/sessions/scheduled", headers=headers)
    data = listed.json()["data"]
    assert [s["id"] for s in data] == [str(session.id)]
    assert data[0]["plan_name"] == "Legs"

    cleared = await client.put(
        f"{PORTAL_URL}/sessions/{session.id}/schedule",
        json={"scheduled_date": None},
        headers=headers,
    )
    assert cleared.status_code == 200
    assert cleared.json()["data"]["scheduled_date"] is None


@pytest.mark.asyncio
async def test_cannot_schedule_someone_elses_session(client: AsyncClient, db_session: AsyncSession, trainer_user):
    owner_row, _ = await create_linked_client(db_session, trainer_user, "owner@example.com")
    _, session = await _plan_with_session(db_session, trainer_user, owner_row)
    _, intruder = await create_linked_client(db_session, trainer_user, "intruder@example.com")
    headers = await login_headers(client, intruder.email)

    response = await client.put(
        f"{PORTAL_URL}/sessions/{session.id}/schedule",
        json={"scheduled_date": "2026-11-03T09:30:00Z"},
        headers=headers,
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_session_view_orders_exercises_and_blanks_missing_levels(
    client: AsyncClient, db_session: AsyncSession, trainer_user
):
    client_row, user = await create_linked_client(db_session, trainer_user, "core.client@example.com")
    headers = await login_headers(client, user.email)
    exercise = Exercise(
        name="Plank",
        categories=["core"],
        levels=[{"level": 1, "video": "https://youtu.be/pSHjTRCQxIw", "repetitions": 30, "weight": 0}],
        created_by=trainer_user.id,
    )
    db_session.add(exercise)
    await db_session.flush()

    plan = Plan(id=uuid.uuid4(), name="Core", client_id=client_row.id, trainer_id=trainer_user.id)
    session = TrainingSession(client_id=client_row.id, name="Core Day", order_index=0)
    series = Series(client_id=client_row.id, name="Holds", order_index=0)
    series.exercises = [
        PlanExercise(plan_id=plan.id, exercise_id=exercise.id, level=4, order_index=1),
        PlanExercise(plan_id=plan.id, exercise_id=exercise.id, level=1, order_index=0),
    ]
    session.series.append(series)
    plan.sessions.append(session)
    db_session.add(plan)
    await db_session.commit()
    db_session.expire(series, ["exercises"])

    view = await client.get(f"{PORTAL_URL}/sessions/{session.id}", headers=headers)
    assert view.status_code == 200
    exercises = view.json()["data"]["series"][0]["exercises"]
    assert [e["level"] for e in exercises] == [1, 4]
    assert exercises[0]["repetitions"] == 30
    assert exercises[1]["video_url"] == ""
    assert exercises[1]["repetitions"] == 0
    assert exercises[1]["weight"] == 0
