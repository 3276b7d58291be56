# services/presenter.py
"""
Role-keyed views of an assignment. Clients never see writer_price and
writers never see client_price; admins see both.
"""
import logging
from typing import Dict, Optional

from assignflow.models.assignment_model import Assignment
from assignflow.models.user_model import User

logger = logging.getLogger("assignflow.presenter")

PARTIAL_NOTE = "Some data may be limited due to formatting error."


def _person(user: Optional[User]) -> Optional[dict]:
    if user is None:
        return None
    return {"id": user.id, "name": user.name, "email": user.email, "avatar": user.avatar}


def file_urls(assignment: Assignment) -> dict:
    aid = assignment.id
    return {
        "attachments": [
            {"name": f.name, "url": f"/api/download/original/{aid}/{f.name}"}
            for f in assignment.attachments
        ],
        "completed_files": [
            {"name": f.name, "url": f"/api/download/completed/{aid}/{f.name}"}
            for f in assignment.completed_files
        ],
        "report_file": (
            {"name": assignment.report_file.name, "url": f"/api/download/report/{aid}"}
            if assignment.report_file else None
        ),
        "payment_proof": (
            {"name": assignment.payment_proof.name, "url": f"/api/download/payment-proof/{aid}"}
            if assignment.payment_proof else None
        ),
    }


def format_assignment(
    assignment: Assignment,
    viewer_role: str,
    people: Optional[Dict[str, User]] = None,
    unread: int = 0,
) -> dict:
    people = people or {}
    view = {
        "id": assignment.id,
        "title": assignment.title,
        "subject": assignment.subject,
        "description": assignment.description,
        "deadline": assignment.deadline,
        "status": assignment.status,
        "progress": assignment.progress,
        "student": _person(people.get(assignment.student_id)) or {"id": assignment.student_id},
        "writer": _person(people.get(assignment.writer_id)) if assignment.writer_id else None,
        "client_accepted_price": assignment.client_accepted_price,
        "turnitin_requested": assignment.turnitin_requested,
        "report_status": assignment.report_status,
        "payment_method": assignment.payment_method,
        "payment_status": assignment.payment_status,
        "admin_approved": assignment.admin_approved,
        "rating": assignment.rating,
        "feedback": assignment.feedback,
        "completed_at": assignment.completed_at,
        "created_at": assignment.created_at,
        "updated_at": assignment.updated_at,
        "unread_message_count": unread,
        **file_urls(assignment),
    }

    if viewer_role == "admin":
        view["client_price"] = assignment.client_price
        view["writer_price"] = assignment.writer_price
        view["paysheet_id"] = assignment.paysheet_id
        view["payment_reference_id"] = assignment.payment_reference_id
    elif viewer_role == "writer":
        view["writer_price"] = assignment.writer_price
        view["price"] = assignment.writer_price
    else:
        view["client_price"] = assignment.client_price
        view["price"] = assignment.client_price

    return view


def partial_assignment(assignment: Assignment, message: str) -> dict:
    return {
        "id": assignment.id,
        "title": assignment.title,
        "status": assignment.status,
        "message": f"{message} {PARTIAL_NOTE}",
    }


def present_or_partial(
    assignment: Assignment,
    viewer_role: str,
    message: str,
    people: Optional[Dict[str, User]] = None,
) -> dict:
    """
    Response for a committed transition. Formatting failures degrade to a
    partial payload instead of turning the completed write into a 500.
    """
    try:
        return {"message": message, "assignment": format_assignment(assignment, viewer_role, people)}
    except Exception as e:
        logger.error(f"Formatting assignment {assignment.id} failed: {e}", exc_info=True)
        return partial_assignment(assignment, message)
