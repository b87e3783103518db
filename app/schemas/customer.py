from datetime import datetime
from typing import List, Optional

from app.models.credit import CreditTransactionType
from app.schemas.base import BaseSchema


class CustomerResponse(BaseSchema):
    id: str
    first_name: str
    surname: str
    email: str
    contact_no: Optional[str]
    credit_balance: int


class CreditTransactionResponse(BaseSchema):
    id: str
    amount: int
    transaction_type: CreditTransactionType
    description: Optional[str]
    cancellation_request_id: Optional[str]
    balance_after: int
    created_at: datetime


class CreditHistoryResponse(BaseSchema):
    credit_balance: int
    transactions: List[CreditTransactionResponse]
