from datetime import date, datetime
from typing import Optional

from pydantic import Field, model_validator

from app.schemas.base import BaseSchema


class TermCreate(BaseSchema):
    """Schema for creating a term."""

    fiscal_year: int = Field(..., ge=2000, le=2100)
    term_number: int = Field(..., ge=1, le=4)
    start_date: date
    end_date: date

    @model_validator(mode="after")
    def validate_dates(self) -> "TermCreate":
        if self.start_date > self.end_date:
            raise ValueError("start_date must be on or before end_date")
        return self


class TermUpdate(BaseSchema):
    """Dates can only change while no session is scheduled in the term."""

    start_date: Optional[date] = None
    end_date: Optional[date] = None


class TermResponse(BaseSchema):
    id: str
    fiscal_year: int
    term_number: int
    start_date: date
    end_date: date
    label: str
    created_at: datetime
