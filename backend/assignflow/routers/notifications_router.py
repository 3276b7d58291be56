from fastapi import APIRouter, Depends, Query
from datetime import datetime, timezone

from assignflow.core.auth import get_current_user
from assignflow.core.errors import NotFound
from assignflow.core.firebase import get_db
from assignflow.models.notification_model import Notification
from assignflow.models.user_model import User
from assignflow.utils.firebase import firestore_run, get_doc, stream_docs

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("/")
async def get_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(get_current_user),
    db=Depends(get_db),
):
    rows = await stream_docs(db.collection("notifications").where("user_id", "==", current_user.id))
    notifications = [Notification(**data) for _, data in rows]
    if unread_only:
        notifications = [n for n in notifications if not n.read]
    notifications.sort(key=lambda n: n.created_at, reverse=True)
    return {
        "notifications": [n.model_dump() for n in notifications[:limit]],
        "unread_count": sum(1 for n in notifications if not n.read),
    }


@router.put("/mark-all-read")
async def mark_all_read(current_user: User = Depends(get_current_user), db=Depends(get_db)):
    rows = await stream_docs(db.collection("notifications").where("user_id", "==", current_user.id))
    now = datetime.now(timezone.utc)
    updated = 0
    for notif_id, data in rows:
        if not data.get("read"):
            await firestore_run(db.collection("notifications").document(notif_id).update, {"read": True, "read_at": now})
            updated += 1
    return {"message": "All notifications marked as read", "updated": updated}


@router.put("/{notif_id}/read")
async def mark_notification_read(notif_id: str, current_user: User = Depends(get_current_user), db=Depends(get_db)):
    ref = db.collection("notifications").document(notif_id)
    data = await get_doc(ref)

    if not data or data.get("user_id") != current_user.id:
        raise NotFound("Notification")

    await firestore_run(ref.update, {
        "read": True,
        "read_at": datetime.now(timezone.utc)
    })

    return {"message": "Marked as read"}
