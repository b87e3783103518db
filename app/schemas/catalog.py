from typing import Optional

from pydantic import EmailStr, Field

from app.schemas.base import BaseSchema


class VenueCreate(BaseSchema):
    name: str = Field(..., min_length=1, max_length=200)
    address: Optional[str] = None


class VenueResponse(BaseSchema):
    id: str
    name: str
    address: Optional[str]
    is_active: bool


class InstructorCreate(BaseSchema):
    name: str = Field(..., min_length=1, max_length=200)
    email: Optional[EmailStr] = None
    user_id: Optional[str] = None


class InstructorResponse(BaseSchema):
    id: str
    name: str
    email: Optional[str]
    user_id: Optional[str]
    is_active: bool


class ExerciseTypeCreate(BaseSchema):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None


class ExerciseTypeResponse(BaseSchema):
    id: str
    name: str
    description: Optional[str]
