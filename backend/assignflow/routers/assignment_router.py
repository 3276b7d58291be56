from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status

from assignflow.core.auth import get_current_user, require_admin, require_client, require_role, require_writer
from assignflow.core.dependencies import get_lifecycle
from assignflow.models.assignment_model import AssignWriterRequest, RateRequest, SetPriceRequest
from assignflow.models.user_model import User
from assignflow.services.lifecycle import AssignmentLifecycle, TransitionResult
from assignflow.services.presenter import present_or_partial

router = APIRouter(prefix="/assignments", tags=["Assignments"])


def respond(result: TransitionResult, viewer: User) -> dict:
    return present_or_partial(result.assignment, viewer.role, result.message, result.people)


# ----------------------------
# 1. SUBMIT
# ----------------------------
@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_assignment(
    title: str = Form(...),
    subject: str = Form(""),
    description: str = Form(""),
    deadline: Optional[datetime] = Form(None),
    files: List[UploadFile] = File(default=[]),
    current_user: User = Depends(require_client),
    lifecycle: AssignmentLifecycle = Depends(get_lifecycle),
):
    result = await lifecycle.create_submission(current_user, title, files, subject, description, deadline)
    return respond(result, current_user)


# ----------------------------
# 2. READ
# ----------------------------
@router.get("/")
async def list_assignments(
    status: Optional[str] = Query(None),
    writer_id: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    current_user: User = Depends(require_admin),
    lifecycle: AssignmentLifecycle = Depends(get_lifecycle),
):
    return await lifecycle.list_all(current_user, status=status, writer_id=writer_id, search=search)


@router.get("/new-submissions")
async def new_submissions(
    current_user: User = Depends(require_admin),
    lifecycle: AssignmentLifecycle = Depends(get_lifecycle),
):
    return await lifecycle.list_new_submissions(current_user)


@router.get("/mine")
async def my_assignments(
    status: Optional[str] = Query(None),
    current_user: User = Depends(require_role("client", "writer")),
    lifecycle: AssignmentLifecycle = Depends(get_lifecycle),
):
    return await lifecycle.list_mine(current_user, status=status)


@router.get("/{assignment_id}")
async def get_assignment(
    assignment_id: str,
    current_user: User = Depends(get_current_user),
    lifecycle: AssignmentLifecycle = Depends(get_lifecycle),
):
    return await lifecycle.get(assignment_id, current_user)


# ----------------------------
# 3. PRICING
# ----------------------------
@router.put("/{assignment_id}/price")
async def set_price(
    assignment_id: str,
    payload: SetPriceRequest,
    current_user: User = Depends(require_admin),
    lifecycle: AssignmentLifecycle = Depends(get_lifecycle),
):
    return respond(await lifecycle.set_client_price(assignment_id, current_user, payload.client_price), current_user)


@router.put("/{assignment_id}/accept-price")
async def accept_price(
    assignment_id: str,
    current_user: User = Depends(require_client),
    lifecycle: AssignmentLifecycle = Depends(get_lifecycle),
):
    return respond(await lifecycle.accept_price(assignment_id, current_user), current_user)


@router.put("/{assignment_id}/reject-price")
async def reject_price(
    assignment_id: str,
    current_user: User = Depends(require_client),
    lifecycle: AssignmentLifecycle = Depends(get_lifecycle),
):
    return respond(await lifecycle.reject_price(assignment_id, current_user), current_user)


# ----------------------------
# 4. PAYMENT
# ----------------------------
@router.post("/{assignment_id}/payment-proof")
async def upload_payment_proof(
    assignment_id: str,
    payment_method: Optional[str] = Form(None),
    proof: Optional[UploadFile] = File(None),
    current_user: User = Depends(require_client),
    lifecycle: AssignmentLifecycle = Depends(get_lifecycle),
):
    result = await lifecycle.upload_payment_proof(assignment_id, current_user, proof, payment_method)
    return respond(result, current_user)


@router.put("/{assignment_id}/confirm-payment")
async def confirm_payment(
    assignment_id: str,
    current_user: User = Depends(require_admin),
    lifecycle: AssignmentLifecycle = Depends(get_lifecycle),
):
    return respond(await lifecycle.confirm_payment(assignment_id, current_user), current_user)


# ----------------------------
# 5. FULFILMENT
# ----------------------------
@router.put("/{assignment_id}/assign")
async def assign_writer(
    assignment_id: str,
    payload: AssignWriterRequest,
    current_user: User = Depends(require_admin),
    lifecycle: AssignmentLifecycle = Depends(get_lifecycle),
):
    result = await lifecycle.assign_writer(
        assignment_id,
        current_user,
        payload.writer_id,
        payload.writer_price,
        payload.client_price,
    )
    return respond(result, current_user)


@router.post("/{assignment_id}/complete")
async def upload_completed_work(
    assignment_id: str,
    files: List[UploadFile] = File(default=[]),
    current_user: User = Depends(require_writer),
    lifecycle: AssignmentLifecycle = Depends(get_lifecycle),
):
    return respond(await lifecycle.upload_completed_work(assignment_id, current_user, files), current_user)


@router.put("/{assignment_id}/approve")
async def approve_work(
    assignment_id: str,
    current_user: User = Depends(require_admin),
    lifecycle: AssignmentLifecycle = Depends(get_lifecycle),
):
    return respond(await lifecycle.approve_work(assignment_id, current_user), current_user)


@router.post("/{assignment_id}/rate")
async def rate_assignment(
    assignment_id: str,
    payload: RateRequest,
    current_user: User = Depends(require_client),
    lifecycle: AssignmentLifecycle = Depends(get_lifecycle),
):
    result = await lifecycle.rate(assignment_id, current_user, payload.rating, payload.feedback)
    return respond(result, current_user)


# ----------------------------
# 6. INTEGRITY REPORT
# ----------------------------
@router.post("/{assignment_id}/report/request")
async def request_report(
    assignment_id: str,
    current_user: User = Depends(require_client),
    lifecycle: AssignmentLifecycle = Depends(get_lifecycle),
):
    return respond(await lifecycle.request_report(assignment_id, current_user), current_user)


@router.put("/{assignment_id}/report/send-to-writer")
async def send_report_to_writer(
    assignment_id: str,
    current_user: User = Depends(require_admin),
    lifecycle: AssignmentLifecycle = Depends(get_lifecycle),
):
    return respond(await lifecycle.send_report_to_writer(assignment_id, current_user), current_user)


@router.post("/{assignment_id}/report/upload")
async def upload_report(
    assignment_id: str,
    report: Optional[UploadFile] = File(None),
    current_user: User = Depends(require_writer),
    lifecycle: AssignmentLifecycle = Depends(get_lifecycle),
):
    return respond(await lifecycle.upload_report(assignment_id, current_user, report), current_user)


@router.put("/{assignment_id}/report/send-to-client")
async def send_report_to_client(
    assignment_id: str,
    current_user: User = Depends(require_admin),
    lifecycle: AssignmentLifecycle = Depends(get_lifecycle),
):
    return respond(await lifecycle.send_report_to_client(assignment_id, current_user), current_user)
