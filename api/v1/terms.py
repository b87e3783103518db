from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_admin
from app.models.term import Term
from app.models.user import User
from app.schemas.term import TermCreate, TermResponse, TermUpdate
from core.db import get_db
from core.exceptions.base import ConflictException, NotFoundException
from core.exceptions.domain import InvalidTermConfiguration
from core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/terms", tags=["Terms"])


@router.get("/", response_model=List[TermResponse])
async def list_terms(
    db_session: AsyncSession = Depends(get_db),
) -> List[TermResponse]:
    """List terms, newest first. Public."""
    terms = await Term.get_all(db_session)
    return [TermResponse.model_validate(t) for t in terms]


@router.get("/{term_id}", response_model=TermResponse)
async def get_term(
    term_id: str,
    db_session: AsyncSession = Depends(get_db),
) -> TermResponse:
    term = await Term.get_by_id(db_session, term_id)
    if not term:
        raise NotFoundException(message="Term not found")
    return TermResponse.model_validate(term)


@router.post("/", response_model=TermResponse, status_code=status.HTTP_201_CREATED)
async def create_term(
    data: TermCreate,
    db_session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin),
) -> TermResponse:
    """Create a term. Fiscal year and term number are unique together."""
    if await Term.get_by_year_and_number(db_session, data.fiscal_year, data.term_number):
        raise ConflictException(
            message=f"Term {data.term_number} of FY{data.fiscal_year} already exists"
        )

    term = Term(**data.model_dump())
    db_session.add(term)
    try:
        await db_session.commit()
    except IntegrityError:
        await db_session.rollback()
        raise ConflictException(
            message=f"Term {data.term_number} of FY{data.fiscal_year} already exists"
        )

    logger.info(f"Term {term.id} created by {current_user.id}")
    return TermResponse.model_validate(term)


@router.put("/{term_id}", response_model=TermResponse)
async def update_term(
    term_id: str,
    data: TermUpdate,
    db_session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin),
) -> TermResponse:
    """Move a term's dates. Not allowed once sessions are scheduled against it."""
    term = await Term.get_by_id(db_session, term_id)
    if not term:
        raise NotFoundException(message="Term not found")
    if await term.has_sessions(db_session):
        raise ConflictException(message="Term dates cannot change once sessions are scheduled")

    start_date = data.start_date or term.start_date
    end_date = data.end_date or term.end_date
    if start_date > end_date:
        raise InvalidTermConfiguration(message="start_date must be on or before end_date")

    term.start_date = start_date
    term.end_date = end_date
    await db_session.commit()
    logger.info(f"Term {term.id} updated by {current_user.id}")
    return TermResponse.model_validate(term)


@router.delete("/{term_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_term(
    term_id: str,
    db_session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin),
) -> None:
    term = await Term.get_by_id(db_session, term_id)
    if not term:
        raise NotFoundException(message="Term not found")
    if await term.has_sessions(db_session):
        raise ConflictException(message="Term has sessions scheduled")

    await db_session.delete(term)
    await db_session.commit()
    logger.info(f"Term {term_id} deleted by {current_user.id}")
