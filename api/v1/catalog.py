"""Reference data sessions are scheduled against."""

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_admin
from app.models.catalog import ExerciseType, Instructor, Venue
from app.models.user import User
from app.schemas.catalog import (
    ExerciseTypeCreate,
    ExerciseTypeResponse,
    InstructorCreate,
    InstructorResponse,
    VenueCreate,
    VenueResponse,
)
from core.db import get_db
from core.exceptions.base import ConflictException
from core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["Catalogue"])


@router.get("/venues", response_model=List[VenueResponse])
async def list_venues(db_session: AsyncSession = Depends(get_db)) -> List[VenueResponse]:
    return [VenueResponse.model_validate(v) for v in await Venue.get_all(db_session)]


@router.post("/venues", response_model=VenueResponse, status_code=status.HTTP_201_CREATED)
async def create_venue(
    data: VenueCreate,
    db_session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin),
) -> VenueResponse:
    venue = Venue(**data.model_dump())
    db_session.add(venue)
    await db_session.commit()
    logger.info(f"Venue {venue.id} created by {current_user.id}")
    return VenueResponse.model_validate(venue)


@router.get("/instructors", response_model=List[InstructorResponse])
async def list_instructors(
    db_session: AsyncSession = Depends(get_db),
) -> List[InstructorResponse]:
    return [InstructorResponse.model_validate(i) for i in await Instructor.get_all(db_session)]


@router.post("/instructors", response_model=InstructorResponse, status_code=status.HTTP_201_CREATED)
async def create_instructor(
    data: InstructorCreate,
    db_session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin),
) -> InstructorResponse:
    instructor = Instructor(**data.model_dump())
    db_session.add(instructor)
    try:
        await db_session.commit()
    except IntegrityError:
        await db_session.rollback()
        raise ConflictException(message="That login is already linked to an instructor")
    logger.info(f"Instructor {instructor.id} created by {current_user.id}")
    return InstructorResponse.model_validate(instructor)


@router.get("/exercise-types", response_model=List[ExerciseTypeResponse])
async def list_exercise_types(
    db_session: AsyncSession = Depends(get_db),
) -> List[ExerciseTypeResponse]:
    return [ExerciseTypeResponse.model_validate(e) for e in await ExerciseType.get_all(db_session)]


@router.post("/exercise-types", response_model=ExerciseTypeResponse, status_code=status.HTTP_201_CREATED)
async def create_exercise_type(
    data: ExerciseTypeCreate,
    db_session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin),
) -> ExerciseTypeResponse:
    exercise_type = ExerciseType(**data.model_dump())
    db_session.add(exercise_type)
    try:
        await db_session.commit()
    except IntegrityError:
        await db_session.rollback()
        raise ConflictException(message=f"Exercise type '{data.name}' already exists")
    return ExerciseTypeResponse.model_validate(exercise_type)
