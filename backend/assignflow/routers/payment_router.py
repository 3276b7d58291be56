# routers/payment_router.py
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse
from pydantic import BaseModel

from assignflow.core import payhere
from assignflow.core.auth import require_admin, require_client
from assignflow.core.config import settings
from assignflow.core.dependencies import get_ledger, get_lifecycle
from assignflow.core.errors import GatewayNotConfigured, NotFound, ValidationFailed
from assignflow.models.user_model import User
from assignflow.services.directory import get_user
from assignflow.services.ledger import PaysheetLedger
from assignflow.services.lifecycle import AssignmentLifecycle
from assignflow.utils.firebase import firestore_run

router = APIRouter(prefix="/payments", tags=["Payments"])
logger = logging.getLogger("assignflow")


class AssignmentCheckoutRequest(BaseModel):
    assignment_id: str


class PaysheetCheckoutRequest(BaseModel):
    paysheet_id: str


def _require_gateway():
    if not settings.PAYHERE_MERCHANT_ID or not settings.PAYHERE_SECRET:
        logger.error("PayHere credentials not configured")
        raise GatewayNotConfigured()


@router.post("/payhere")
async def init_assignment_payment(
    payload: AssignmentCheckoutRequest,
    current_user: User = Depends(require_client),
    lifecycle: AssignmentLifecycle = Depends(get_lifecycle),
):
    _require_gateway()
    order_id = payhere.new_order_id("assignment", payload.assignment_id)
    assignment = await lifecycle.start_card_payment(payload.assignment_id, current_user, order_id)

    amount = payhere.to_gateway_amount(assignment.client_price)
    logger.info(f"PayHere checkout {order_id} for assignment {assignment.id}: {amount} {settings.PAYHERE_CURRENCY}")
    return payhere.checkout_fields(
        order_id,
        amount,
        assignment.title,
        {"name": current_user.name, "email": current_user.email, "phone": current_user.phone},
    )


@router.post("/payhere/paysheet")
async def init_paysheet_payment(
    payload: PaysheetCheckoutRequest,
    current_user: User = Depends(require_admin),
    ledger: PaysheetLedger = Depends(get_ledger),
):
    _require_gateway()
    entry = await ledger.get(payload.paysheet_id)
    if entry is None:
        raise NotFound("Paysheet")
    if entry.status == "Paid":
        raise ValidationFailed("Paysheet is already paid")
    if entry.amount <= 0:
        raise ValidationFailed("Paysheet amount must be greater than 0")

    order_id = payhere.new_order_id("paysheet", entry.id)
    await firestore_run(ledger.paysheets.document(entry.id).update, {
        "payment_method": "Card",
        "payment_status": "Pending",
        "payment_reference_id": order_id,
    })

    owner = await get_user(ledger.db, entry.owner_id)
    return payhere.checkout_fields(
        order_id,
        payhere.to_gateway_amount(entry.amount),
        f"Paysheet {entry.period}",
        {"name": owner.name if owner else "", "email": owner.email if owner else ""},
    )


@router.api_route("/payhere/callback", methods=["GET", "POST"])
async def payhere_callback(
    request: Request,
    lifecycle: AssignmentLifecycle = Depends(get_lifecycle),
    ledger: PaysheetLedger = Depends(get_ledger),
):
    if request.method == "POST":
        params = dict(await request.form())
    else:
        params = dict(request.query_params)

    order_id = params.get("order_id", "")
    if not payhere.verify_callback(params, settings.PAYHERE_SECRET):
        logger.warning(f"Invalid PayHere signature for order {order_id}")
        raise ValidationFailed("Invalid signature")

    parsed = payhere.parse_order_id(order_id)
    if parsed is None:
        logger.warning(f"Unknown PayHere order format: {order_id}")
        raise ValidationFailed("Invalid order ID format")

    kind, entity_id = parsed
    success = params.get("status_code") == payhere.SUCCESS_STATUS_CODE
    logger.info(f"PayHere callback {order_id}: status_code={params.get('status_code')}")

    if kind == "assignment":
        await lifecycle.settle_card_payment(entity_id, order_id, success)
    elif success:
        entry = await ledger.get(entity_id)
        if entry is None:
            raise NotFound("Paysheet")
        if entry.status != "Paid":
            await ledger.mark_entry_paid(entity_id, "Card", reference_id=order_id)
    else:
        await firestore_run(ledger.paysheets.document(entity_id).update, {
            "payment_status": "Failed",
            "payment_reference_id": order_id,
        })

    return {"message": "Callback processed"}


@router.get("/payhere/success")
async def payhere_success(order_id: str = ""):
    return RedirectResponse(url=f"{settings.FRONTEND_URL.rstrip('/')}/payment/success?order_id={order_id}")


@router.get("/payhere/cancel")
async def payhere_cancel(order_id: str = ""):
    return RedirectResponse(url=f"{settings.FRONTEND_URL.rstrip('/')}/payment/cancel?order_id={order_id}")
