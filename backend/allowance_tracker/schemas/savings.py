from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field

from allowance_tracker.models import SavingsTransactionType, TransferType


class SavingsConfig(BaseModel):
    transfer_type: TransferType
    transfer_amount: Decimal = Decimal("0")
    transfer_percentage: int = 0


class SavingsAmount(BaseModel):
    amount: Decimal = Field(gt=0)
    description: Optional[str] = None


class SavingsTransactionRead(BaseModel):
    id: int
    child_id: int
    amount: float
    type: SavingsTransactionType
    description: str
    balance_after: float
    is_automatic: bool
    source_allowance_transaction_id: Optional[int]
    created_at: datetime

    class Config:
        from_attributes = True


class SavingsSummary(BaseModel):
    child_id: int
    is_enabled: bool
    current_balance: float
    transfer_type: TransferType
    transfer_amount: float
    transfer_percentage: int
    total_deposited: float
    total_withdrawn: float
    transaction_count: int
    last_transaction_date: Optional[datetime]
    config_description: str
