from collections import Counter, defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends, Query

from assignflow.core.auth import require_admin
from assignflow.core.firebase import get_db
from assignflow.models.assignment_model import Assignment
from assignflow.models.paysheet_model import Paysheet
from assignflow.models.user_model import User
from assignflow.services.directory import load_users, users_with_role
from assignflow.utils.firebase import stream_docs

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])

FINISHED_STATUSES = {"Completed", "Admin Approved"}
REVENUE_STATUSES = {"Paid", "In Progress", "Completed", "Admin Approved", "Revision"}


async def _assignments(db):
    return [Assignment(**data) for _, data in await stream_docs(db.collection("assignments"))]


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


@router.get("/stats", response_model=Dict[str, Any])
async def get_stats(current_user: User = Depends(require_admin), db=Depends(get_db)):
    assignments = await _assignments(db)
    by_status = Counter(a.status for a in assignments)
    paysheets = [Paysheet(**data) for _, data in await stream_docs(db.collection("paysheets"))]

    revenue = sum(a.client_price or 0 for a in assignments if a.status in REVENUE_STATUSES)
    writer_cost = sum(a.writer_price or 0 for a in assignments if a.writer_id and a.status in REVENUE_STATUSES)

    return {
        "total_assignments": len(assignments),
        "by_status": dict(by_status),
        "new_submissions": sum(1 for a in assignments if a.status == "New"),
        "awaiting_payment_review": by_status.get("Payment Proof Submitted", 0),
        "in_progress": by_status.get("In Progress", 0) + by_status.get("Revision", 0),
        "awaiting_approval": by_status.get("Completed", 0),
        "finished": sum(1 for a in assignments if a.status in FINISHED_STATUSES or (a.status == "Paid" and a.writer_id)),
        "total_revenue": round(revenue, 2),
        "total_profit": round(revenue - writer_cost, 2),
        "writer_payouts_due": round(sum(p.amount for p in paysheets if p.kind == "writer" and p.status == "Due"), 2),
        "writer_payouts_pending": round(sum(p.amount for p in paysheets if p.kind == "writer" and p.status == "Pending"), 2),
        "writers": len(await users_with_role(db, "writer")),
    }


@router.get("/deadlines")
async def upcoming_deadlines(
    days: int = Query(7, ge=1, le=90),
    current_user: User = Depends(require_admin),
    db=Depends(get_db),
):
    now = datetime.now(timezone.utc)
    horizon = now + timedelta(days=days)
    open_work = [
        a for a in await _assignments(db)
        if a.deadline and a.status not in FINISHED_STATUSES and not (a.status == "Paid" and a.rating is not None)
        and _aware(a.deadline) <= horizon
    ]
    open_work.sort(key=lambda a: _aware(a.deadline))
    people = await load_users(db, [a.writer_id for a in open_work] + [a.student_id for a in open_work])

    return [
        {
            "id": a.id,
            "title": a.title,
            "status": a.status,
            "deadline": a.deadline,
            "overdue": _aware(a.deadline) < now,
            "writer": people[a.writer_id].name if a.writer_id in people else None,
            "student": people[a.student_id].name if a.student_id in people else None,
        }
        for a in open_work
    ]


@router.get("/writer-performance")
async def writer_performance(current_user: User = Depends(require_admin), db=Depends(get_db)):
    writers = await users_with_role(db, "writer")
    stats = defaultdict(lambda: {"assigned": 0, "active": 0, "completed": 0, "on_time": 0, "earnings": 0.0})

    for a in await _assignments(db):
        if not a.writer_id:
            continue
        s = stats[a.writer_id]
        s["assigned"] += 1
        if a.status in ("In Progress", "Revision"):
            s["active"] += 1
        if a.completed_at:
            s["completed"] += 1
            s["earnings"] += a.writer_price or 0
            if a.deadline and _aware(a.completed_at) <= _aware(a.deadline):
                s["on_time"] += 1

    result = []
    for w in writers:
        s = stats[w.id]
        result.append({
            "id": w.id,
            "name": w.name,
            "rating": w.rating,
            "status": w.status,
            "assigned": s["assigned"],
            "active": s["active"],
            "completed": s["completed"],
            "on_time_rate": round(s["on_time"] / s["completed"] * 100, 1) if s["completed"] else None,
            "earnings": round(s["earnings"], 2),
        })
    result.sort(key=lambda r: (r["rating"], r["completed"]), reverse=True)
    return result
