from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from app.models.purchase import Purchase
from app.schemas.allocation import AllocationResult


class PurchaseResponse(BaseModel):
    id: str
    merchant_name: str
    category: List[str]
    amount: Decimal
    roundup_amount: Decimal
    transaction_date: str
    is_pending: bool
    processed_for_donation: bool
    donated_to_charity_id: Optional[str] = None

    @classmethod
    def from_purchase(cls, purchase: Purchase) -> "PurchaseResponse":
        return cls(
            id=str(purchase.id),
            merchant_name=purchase.merchant_name,
            category=purchase.category,
            amount=purchase.amount,
            roundup_amount=purchase.roundup_amount,
            transaction_date=purchase.transaction_date,
            is_pending=purchase.is_pending,
            processed_for_donation=purchase.processed_for_donation,
            donated_to_charity_id=purchase.donated_to_charity_id
        )


class SimulatePurchaseRequest(BaseModel):
    """Optional overrides for a demo purchase."""
    amount: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
    merchant: Optional[str] = Field(None, min_length=1, max_length=100)


class SimulatedDonation(BaseModel):
    allocated: bool
    charity_id: Optional[str] = None
    charity_name: Optional[str] = None
    amount: Decimal
    unallocated_amount: Optional[Decimal] = None


class SimulatePurchaseResponse(BaseModel):
    success: bool = True
    demo: bool = True
    transaction: PurchaseResponse
    donation: SimulatedDonation
    allocation: AllocationResult
    explanation: dict


class DashboardStatsResponse(BaseModel):
    total_donated: Decimal
    transactions_count: int
    current_charity: Optional[str] = None
    pending_roundup: Decimal
    meets_payout_threshold: bool
