# services/directory.py
"""User lookups shared by the lifecycle, ledger and notifier."""
from typing import Dict, Iterable, List, Optional

from assignflow.models.user_model import User
from assignflow.utils.firebase import firestore_run, get_doc, stream_docs


async def get_user(db, user_id: Optional[str]) -> Optional[User]:
    if not user_id:
        return None
    data = await get_doc(db.collection("users").document(user_id))
    return User(**data) if data else None


async def load_users(db, user_ids: Iterable[Optional[str]]) -> Dict[str, User]:
    users = {}
    for uid in {u for u in user_ids if u}:
        user = await get_user(db, uid)
        if user:
            users[uid] = user
    return users


async def users_with_role(db, role: str) -> List[User]:
    rows = await stream_docs(db.collection("users").where("role", "==", role))
    return [User(**data) for _, data in rows]


async def admin_ids(db) -> List[str]:
    return [u.id for u in await users_with_role(db, "admin")]


async def first_admin(db) -> Optional[User]:
    """The admin who holds the profit ledger."""
    query = db.collection("users").where("role", "==", "admin").limit(1)
    rows = await stream_docs(query)
    return User(**rows[0][1]) if rows else None


async def update_user(db, user_id: str, fields: dict):
    await firestore_run(db.collection("users").document(user_id).update, fields)
