import asyncio
import logging
from sqlalchemy import select
from app.database import AsyncSessionLocal
from app.models.user import User
from app.models.enums import Role
from app.models.coaching import Client, TrainerBrand
from app.models.fitness import Exercise, Plan, PlanExercise, Series, TrainingSession
from app.auth.security import get_password_hash
from app.services.trainer_service import TrainerService

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

SEED_PASSWORD = "CoachPass123!"

USERS = [
    {"email": "admin@coach-hub.com", "name": "Platform Admin", "role": Role.ADMIN},
    {"email": "trainer.lucia@coach-hub.com", "name": "Lucia Trainer", "role": Role.TRAINER},
    {"email": "client.marco@coach-hub.com", "name": "Marco Client", "role": Role.CLIENT},
]

TRAINER_EMAIL = "trainer.lucia@coach-hub.com"
CLIENT_EMAIL = "client.marco@coach-hub.com"

EXERCISES = [
    {
        "name": "Goblet Squat",
        "description": "Front-loaded squat holding a kettlebell at chest height.",
        "categories": ["strength", "core"],
        "levels": [
            {"level": 1, "video": "https://www.youtube.com/watch?v=MeIiIdhvXT4", "repetitions": 10, "weight": 8},
            {"level": 2, "video": "https://www.youtube.com/watch?v=MeIiIdhvXT4", "repetitions": 12, "weight": 12},
        ],
    },
    {
        "name": "Jump Rope",
        "description": "Steady rhythm skipping.",
        "categories": ["cardio"],
        "levels": [
            {"level": 1, "video": "https://youtu.be/FJmRQ5iTXKE", "repetitions": 60, "weight": 0},
        ],
    },
]

PLAN_NAME = "Foundations Block"


async def _ensure_user(session, data: dict) -> User:
    result = await session.execute(select(User).where(User.email == data["email"]))
    user = result.scalar_one_or_none()
    if user is not None:
        logger.info("User already exists: %s", data["email"])
        return user
    user = User(
        email=data["email"],
        name=data["name"],
        hashed_password=get_password_hash(SEED_PASSWORD),
        role=data["role"],
        registration_type="admin",
        is_active=True,
    )
    session.add(user)
    await session.flush()
    logger.info("Created user: %s", data["email"])
    return user


async def _ensure_exercise(session, data: dict, creator: User) -> Exercise:
    result = await session.execute(select(Exercise).where(Exercise.name == data["name"]))
    exercise = result.scalar_one_or_none()
    if exercise is None:
        exercise = Exercise(created_by=creator.id, **data)
        session.add(exercise)
        await session.flush()
        logger.info("Created exercise: %s", data["name"])
    return exercise


async def seed_data():
    async with AsyncSessionLocal() as session:
        users = {data["email"]: await _ensure_user(session, data) for data in USERS}
        trainer = users[TRAINER_EMAIL]
        client_user = users[CLIENT_EMAIL]

        if await TrainerService.get_brand(session, trainer.id) is None:
            session.add(
                TrainerBrand(
                    trainer_id=trainer.id,
                    primary_color="#0EA5E9",
                    secondary_color="#E0F2FE",
                    accent_color="#0369A1",
                )
            )
            logger.info("Created brand for %s", trainer.email)

        result = await session.execute(select(Client).where(Client.email == CLIENT_EMAIL))
        client = result.scalar_one_or_none()
        if client is None:
            client = Client(email=CLIENT_EMAIL, name=client_user.name or "Client", user_id=client_user.id)
            session.add(client)
            await session.flush()
            logger.info("Created client record for %s", CLIENT_EMAIL)
        await TrainerService.link_trainer(session, client, trainer.id)

        exercises = [await _ensure_exercise(session, data, trainer) for data in EXERCISES]

        result = await session.execute(
            select(Plan).where(Plan.name == PLAN_NAME, Plan.client_id == client.id, Plan.trainer_id == trainer.id)
        )
        if result.scalar_one_or_none() is None:
            plan = Plan(name=PLAN_NAME, month="2026-10", client_id=client.id, trainer_id=trainer.id)
            session.add(plan)
            await session.flush()
            training = TrainingSession(plan_id=plan.id, client_id=client.id, name="Day 1", order_index=0)
            series = Series(client_id=client.id, name="Warm-up circuit", order_index=0)
            series.exercises = [
                PlanExercise(plan_id=plan.id, exercise_id=exercise.id, level=1, order_index=index)
                for index, exercise in enumerate(exercises)
            ]
            training.series.append(series)
            session.add(training)
            logger.info("Created plan %s for %s", PLAN_NAME, CLIENT_EMAIL)

        await session.commit()
    logger.info("Seeding complete.")

if __name__ == "__main__":
    asyncio.run(seed_data())
