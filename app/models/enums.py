from enum import Enum

class Role(str, Enum):
    ADMIN = "ADMIN"
    TRAINER = "TRAINER"
    CLIENT = "CLIENT"


class InvitationStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


class ExerciseCategory(str, Enum):
    STRENGTH = "strength"
    CARDIO = "cardio"
    FLEXIBILITY = "flexibility"
    BALANCE = "balance"
    CORE = "core"


EXERCISE_CATEGORY_LABELS = {
    ExerciseCategory.STRENGTH: "Strength",
    ExerciseCategory.CARDIO: "Cardio",
    ExerciseCategory.FLEXIBILITY: "Flexibility",
    ExerciseCategory.BALANCE: "Balance",
    ExerciseCategory.CORE: "Core",
}
