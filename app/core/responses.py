import uuid
from typing import Generic, TypeVar, Optional
from pydantic import BaseModel

T = TypeVar("T")

class ResponseBase(BaseModel, Generic[T]):
    data: Optional[T] = None
    message: Optional[str] = None
    success: bool = True

class StandardResponse(ResponseBase[T]):
    pass


class CreatedId(BaseModel):
    id: uuid.UUID


def created(obj_id: uuid.UUID, message: str) -> StandardResponse[CreatedId]:
    return StandardResponse(message=message, data=CreatedId(id=obj_id))
