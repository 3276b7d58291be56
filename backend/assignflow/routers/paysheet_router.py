import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from fastapi.responses import JSONResponse

from assignflow.core.auth import require_admin, require_writer
from assignflow.core.dependencies import get_ledger
from assignflow.core.errors import ValidationFailed
from assignflow.core.storage import save_upload
from assignflow.models.user_model import User
from assignflow.services.ledger import PaysheetLedger

logger = logging.getLogger("assignflow")
router = APIRouter(prefix="/paysheets", tags=["Paysheets"])


@router.get("/")
async def list_writer_paysheets(
    status: Optional[str] = Query(None),
    current_user: User = Depends(require_admin),
    ledger: PaysheetLedger = Depends(get_ledger),
):
    """Writer paysheets grouped by writer, for the payout desk."""
    return await ledger.grouped_writer_entries(status=status)


@router.get("/mine")
async def my_paysheets(
    current_user: User = Depends(require_writer),
    ledger: PaysheetLedger = Depends(get_ledger),
):
    return await ledger.writer_view(current_user.id)


@router.get("/admin/earnings")
async def admin_earnings(
    current_user: User = Depends(require_admin),
    ledger: PaysheetLedger = Depends(get_ledger),
):
    return await ledger.admin_view()


@router.post("/generate")
async def generate_paysheets(
    current_user: User = Depends(require_admin),
    ledger: PaysheetLedger = Depends(get_ledger),
):
    result = await ledger.generate()
    if result["processed"] == 0:
        return {"message": "No new paid assignments to generate paysheets for.", **result}
    return JSONResponse(status_code=201, content={"message": "Paysheets generated/updated successfully.", **result})


@router.put("/{paysheet_id}/mark-paid")
async def mark_paysheet_paid(
    paysheet_id: str,
    payment_method: str = Form("Bank"),
    proof: Optional[UploadFile] = File(None),
    current_user: User = Depends(require_admin),
    ledger: PaysheetLedger = Depends(get_ledger),
):
    if payment_method not in ("Bank", "Card"):
        raise ValidationFailed("Payment method must be Bank or Card")
    stored = await save_upload(proof, "paysheetProof") if proof is not None and proof.filename else None
    entry = await ledger.mark_entry_paid(paysheet_id, payment_method, stored)
    return {"message": "Paysheet marked as paid", "paysheet": entry.model_dump()}


@router.put("/assignments/{assignment_id}/mark-paid")
async def mark_assignment_paid(
    assignment_id: str,
    proof: Optional[UploadFile] = File(None),
    current_user: User = Depends(require_admin),
    ledger: PaysheetLedger = Depends(get_ledger),
):
    stored = await save_upload(proof, "paysheetProof") if proof is not None and proof.filename else None
    entry = await ledger.mark_assignment_paid(assignment_id, stored)
    return {"message": "Assignment payment marked as paid", "paysheet": entry.model_dump()}
