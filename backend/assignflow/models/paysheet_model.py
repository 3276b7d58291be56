from pydantic import BaseModel, Field
from typing import List, Literal, Optional
from datetime import datetime, timezone

PaysheetKind = Literal["writer", "admin"]
PaysheetStatus = Literal["Pending", "Due", "Paid"]

# Entries in these statuses still accept new assignments
OPEN_STATUSES = ["Pending", "Due"]


class Paysheet(BaseModel):
    """Period ledger entry: a writer's payable earnings or the desk's profit for one month."""
    id: str = Field(..., alias="_id")
    owner_id: str
    kind: PaysheetKind = "writer"
    period: str
    amount: float = 0.0
    status: PaysheetStatus = "Due"
    assignments: List[str] = []

    proof_url: Optional[str] = None
    payment_method: Optional[Literal["Bank", "Card"]] = None
    payment_status: Optional[Literal["Pending", "Paid", "Failed"]] = None
    payment_reference_id: Optional[str] = None
    paid_at: Optional[datetime] = None

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = {"from_attributes": True, "populate_by_name": True}

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATUSES


class IndividualPayment(BaseModel):
    """One assignment's contribution, with its status derived from the ledger at read time."""
    assignment_id: str
    title: str
    amount: float
    payment_status: PaysheetStatus
    period: str
    paysheet_id: Optional[str] = None
    proof_url: Optional[str] = None
    assignment_status: str
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class MonthlyTotal(BaseModel):
    period: str
    total_amount: float = 0.0
    paid_amount: float = 0.0
    due_amount: float = 0.0
    pending_amount: float = 0.0
    total_to_pay: float = 0.0
    assignment_count: int = 0
    paysheet_id: Optional[str] = None
    paysheet_status: Optional[PaysheetStatus] = None
    proof_url: Optional[str] = None
    is_current_month: bool = False
