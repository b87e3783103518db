from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_customer
from app.models.credit import CreditTransaction
from app.models.customer import Customer
from app.schemas.customer import (
    CreditHistoryResponse,
    CreditTransactionResponse,
    CustomerResponse,
)
from core.db import get_db

router = APIRouter(prefix="/customers", tags=["Customers"])


@router.get("/me", response_model=CustomerResponse)
async def get_my_profile(
    customer: Customer = Depends(get_current_customer),
) -> CustomerResponse:
    return CustomerResponse.model_validate(customer)


@router.get("/me/credits", response_model=CreditHistoryResponse)
async def get_my_credits(
    db_session: AsyncSession = Depends(get_db),
    customer: Customer = Depends(get_current_customer),
) -> CreditHistoryResponse:
    """Class credit balance and the cancellations that earned it."""
    transactions = await CreditTransaction.get_customer_transactions(
        db_session, customer.id
    )
    return CreditHistoryResponse(
        credit_balance=customer.credit_balance,
        transactions=[CreditTransactionResponse.model_validate(t) for t in transactions],
    )
