from pydantic import BaseModel, Field
from typing import Dict, List, Literal, Optional, Set
from datetime import datetime, timezone

AssignmentStatus = Literal[
    "New",
    "Price Set",
    "Price Accepted",
    "Price Rejected",
    "Payment Pending",
    "Payment Proof Submitted",
    "Paid",
    "In Progress",
    "Completed",
    "Admin Approved",
    "Revision",
]

ReportStatus = Literal["requested", "sent_to_writer", "writer_submitted", "sent_to_user", "completed"]

# Every status edge an assignment may take. Anything else is rejected.
ALLOWED_TRANSITIONS: Dict[str, Set[str]] = {
    "New": {"Price Set", "In Progress"},
    "Price Set": {"Price Accepted", "Price Rejected", "In Progress"},
    "Price Rejected": {"Price Set", "In Progress"},
    "Price Accepted": {"Payment Proof Submitted", "Paid", "In Progress"},
    "Payment Pending": {"Payment Proof Submitted", "Paid", "In Progress"},
    "Payment Proof Submitted": {"Paid", "In Progress"},
    "Paid": {"In Progress"},
    "In Progress": {"Completed"},
    "Revision": {"Completed"},
    "Completed": {"Admin Approved", "Paid"},
    "Admin Approved": {"Paid"},
}

# Statuses from which a writer may be assigned without a price override
ASSIGNABLE_STATUSES = {"Price Accepted", "Payment Proof Submitted", "Paid"}

# Statuses from which the admin may assign only if a client price is supplied
OVERRIDE_STATUSES = {"New", "Price Set", "Price Rejected", "Payment Pending"}


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, set())


class StoredFile(BaseModel):
    name: str
    path: str


class Assignment(BaseModel):
    """Firestore representation of an assignment."""
    id: str = Field(..., alias="_id")
    title: str
    subject: str = ""
    description: str = ""
    student_id: str
    writer_id: Optional[str] = None
    deadline: Optional[datetime] = None

    status: AssignmentStatus = "New"
    progress: int = 0

    # ---------------- Pricing ----------------
    client_price: Optional[float] = None
    writer_price: Optional[float] = None
    client_accepted_price: bool = False

    # ---------------- Files ----------------
    attachments: List[StoredFile] = []
    completed_files: List[StoredFile] = []
    payment_proof: Optional[StoredFile] = None
    report_file: Optional[StoredFile] = None

    # ---------------- Integrity report ----------------
    turnitin_requested: bool = False
    report_status: Optional[ReportStatus] = None

    # ---------------- Payment ----------------
    payment_method: Optional[Literal["Bank", "Card"]] = None
    payment_status: Optional[Literal["Pending", "Paid", "Failed"]] = None
    payment_reference_id: Optional[str] = None

    # ---------------- Review ----------------
    admin_approved: bool = False
    rating: Optional[int] = None
    feedback: Optional[str] = None

    # ---------------- Ledger back-reference ----------------
    paysheet_id: Optional[str] = None

    completed_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = {"from_attributes": True, "populate_by_name": True}

    @property
    def admin_profit(self) -> float:
        if not self.client_price or not self.writer_price:
            return 0.0
        return self.client_price - self.writer_price


# ---------------- Request payloads ----------------

class SetPriceRequest(BaseModel):
    client_price: float = Field(..., gt=0)


class AssignWriterRequest(BaseModel):
    writer_id: str
    writer_price: float = Field(..., gt=0)
    client_price: Optional[float] = Field(default=None, gt=0)


class RateRequest(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    feedback: Optional[str] = None
