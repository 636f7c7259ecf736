"""
Purchase model - a spending transaction observed on a linked account.

Lifecycle:
- Created by ingestion with processed_for_donation = False
- Read once by the allocation engine, then marked processed (terminal)
- donated_to_charity_id holds the first charity that got a share, or None
"""

from decimal import Decimal
from typing import List, Optional

from pydantic import Field

from app.models.base import MongoModel
from app.utils.money import from_cents


class Purchase(MongoModel):
    user_id: str
    linked_account_id: Optional[str] = None
    external_transaction_id: str  # Bank-side id, unique

    amount_cents: int = Field(..., ge=0)  # Absolute value of the spend
    roundup_amount_cents: int = Field(..., ge=0)

    merchant_name: str = ""
    category: List[str] = Field(default_factory=list)
    transaction_date: str  # YYYY-MM-DD

    is_pending: bool = False
    is_donation: bool = False  # Our own donation debits, never rounded up

    processed_for_donation: bool = False
    donated_to_charity_id: Optional[str] = None

    @property
    def amount(self) -> Decimal:
        return from_cents(self.amount_cents)

    @property
    def roundup_amount(self) -> Decimal:
        return from_cents(self.roundup_amount_cents)
