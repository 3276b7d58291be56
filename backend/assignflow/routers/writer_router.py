from typing import Optional

from fastapi import APIRouter, Depends, Query

from assignflow.core.auth import require_admin
from assignflow.core.errors import NotFound
from assignflow.core.firebase import get_db
from assignflow.models.assignment_model import Assignment
from assignflow.models.user_model import User, public_user
from assignflow.services.directory import get_user, users_with_role
from assignflow.utils.firebase import stream_docs

router = APIRouter(prefix="/writers", tags=["Writers"])

ACTIVE_STATUSES = {"In Progress", "Revision"}


async def _with_workload(db, writer: User) -> dict:
    rows = await stream_docs(db.collection("assignments").where("writer_id", "==", writer.id))
    assignments = [Assignment(**data) for _, data in rows]
    view = public_user(writer)
    view["active_assignments"] = sum(1 for a in assignments if a.status in ACTIVE_STATUSES)
    view["total_assignments"] = len(assignments)
    return view


@router.get("/")
async def list_writers(
    status: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    current_user: User = Depends(require_admin),
    db=Depends(get_db),
):
    writers = await users_with_role(db, "writer")
    if status:
        writers = [w for w in writers if w.status == status]
    if search:
        needle = search.lower()
        writers = [
            w for w in writers
            if needle in w.name.lower() or needle in w.email.lower() or needle in (w.specialty or "").lower()
        ]
    writers.sort(key=lambda w: w.name.lower())
    return [await _with_workload(db, w) for w in writers]


@router.get("/{writer_id}")
async def get_writer(writer_id: str, current_user: User = Depends(require_admin), db=Depends(get_db)):
    writer = await get_user(db, writer_id)
    if writer is None or writer.role != "writer":
        raise NotFound("Writer")
    return await _with_workload(db, writer)
