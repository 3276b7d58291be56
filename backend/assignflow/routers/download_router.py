import logging
import mimetypes
from typing import List

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse

from assignflow.core.auth import get_current_user
from assignflow.core.dependencies import get_ledger, get_lifecycle
from assignflow.core.errors import Forbidden, NotFound
from assignflow.core.storage import resolve_stored_path
from assignflow.models.assignment_model import Assignment, StoredFile
from assignflow.models.user_model import User
from assignflow.services.ledger import PaysheetLedger
from assignflow.services.lifecycle import AssignmentLifecycle

logger = logging.getLogger("assignflow")
router = APIRouter(prefix="/download", tags=["Downloads"])


def _send(stored: StoredFile) -> FileResponse:
    path = resolve_stored_path(stored.path)
    if path is None:
        raise NotFound("File")
    media_type = mimetypes.guess_type(stored.name)[0] or "application/octet-stream"
    return FileResponse(path, media_type=media_type, filename=stored.name)


def _pick(files: List[StoredFile], filename: str) -> StoredFile:
    for f in files:
        if f.name == filename:
            return f
    raise NotFound("File")


async def _viewable(lifecycle: AssignmentLifecycle, assignment_id: str, user: User) -> Assignment:
    assignment = await lifecycle.load(assignment_id)
    if not lifecycle.can_view(assignment, user):
        raise Forbidden("Not authorized to download files for this assignment")
    return assignment


@router.get("/original/{assignment_id}/{filename}")
async def download_original(
    assignment_id: str,
    filename: str,
    current_user: User = Depends(get_current_user),
    lifecycle: AssignmentLifecycle = Depends(get_lifecycle),
):
    assignment = await _viewable(lifecycle, assignment_id, current_user)
    return _send(_pick(assignment.attachments, filename))


@router.get("/completed/{assignment_id}/{filename}")
async def download_completed(
    assignment_id: str,
    filename: str,
    current_user: User = Depends(get_current_user),
    lifecycle: AssignmentLifecycle = Depends(get_lifecycle),
):
    assignment = await _viewable(lifecycle, assignment_id, current_user)
    # Clients get the finished work only once an admin has signed it off
    if current_user.role == "client" and not assignment.admin_approved:
        raise Forbidden("Completed work is available after admin approval")
    return _send(_pick(assignment.completed_files, filename))


@router.get("/payment-proof/{assignment_id}")
async def download_payment_proof(
    assignment_id: str,
    current_user: User = Depends(get_current_user),
    lifecycle: AssignmentLifecycle = Depends(get_lifecycle),
):
    assignment = await _viewable(lifecycle, assignment_id, current_user)
    if current_user.role == "writer" or assignment.payment_proof is None:
        raise NotFound("Payment proof")
    return _send(assignment.payment_proof)


@router.get("/report/{assignment_id}")
async def download_report(
    assignment_id: str,
    current_user: User = Depends(get_current_user),
    lifecycle: AssignmentLifecycle = Depends(get_lifecycle),
):
    assignment = await _viewable(lifecycle, assignment_id, current_user)
    if assignment.report_file is None:
        raise NotFound("Report")
    if current_user.role == "client" and assignment.report_status not in ("sent_to_user", "completed"):
        raise Forbidden("Report has not been released yet")
    return _send(assignment.report_file)


@router.get("/paysheet-proof/{paysheet_id}")
async def download_paysheet_proof(
    paysheet_id: str,
    current_user: User = Depends(get_current_user),
    ledger: PaysheetLedger = Depends(get_ledger),
):
    entry = await ledger.get(paysheet_id)
    if entry is None or not entry.proof_url:
        raise NotFound("Payment proof")
    if current_user.role != "admin" and entry.owner_id != current_user.id:
        raise Forbidden("Not authorized to view this payment proof")
    return _send(StoredFile(name=entry.proof_url.rsplit("/", 1)[-1], path=entry.proof_url))
