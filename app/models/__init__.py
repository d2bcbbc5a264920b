from app.models.audit import AuditLog
from app.models.auth import RefreshToken
from app.models.coaching import Client, ClientInvitation, ClientTrainerRelationship, TrainerBrand
from app.models.fitness import Evaluation, Exercise, Plan, PlanExercise, Series, TrainingSession
from app.models.user import User


__all__ = [
    "AuditLog",
    "RefreshToken",
    "User",
    "Client",
    "ClientInvitation",
    "ClientTrainerRelationship",
    "TrainerBrand",
    "Exercise",
    "Plan",
    "TrainingSession",
    "Series",
    "PlanExercise",
    "Evaluation",
]
