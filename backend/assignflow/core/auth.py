# core/auth.py
from datetime import datetime, timezone
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from firebase_admin import auth
from typing import Optional
import logging

from assignflow.models.user_model import User
from assignflow.core.firebase import get_db
from assignflow.utils.firebase import firestore_run

logger = logging.getLogger("assignflow")
bearer_scheme = HTTPBearer(auto_error=False)


def verify_token(token: str) -> str:
    """Verifies a Firebase ID token and returns its uid. Raises 401."""
    try:
        decoded = auth.verify_id_token(token)
    except Exception as e:
        logger.warning(f"Token verification failed: {e}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid authentication token")

    uid = decoded.get("uid")
    if not uid:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload")
    return uid


async def load_or_create_user(db, uid: str) -> User:
    ref = db.collection("users").document(uid)
    user_doc = await firestore_run(ref.get)
    if user_doc.exists:
        return User(**user_doc.to_dict())

    # First sign-in: everyone starts as a client, admins promote writers
    try:
        firebase_user = await firestore_run(auth.get_user, uid)
        now = datetime.now(timezone.utc)
        new_user = User(
            _id=uid,
            name=firebase_user.display_name or (firebase_user.email.split("@")[0] if firebase_user.email else ""),
            email=firebase_user.email or "",
            role="client",
            created_at=now,
            updated_at=now,
        )
        await firestore_run(ref.set, new_user.model_dump(by_alias=True))
        return new_user
    except Exception as e:
        logger.error(f"Failed to auto-create user {uid}: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to create user")


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db=Depends(get_db),
) -> User:
    """
    Returns the currently authenticated user.
    Raises 401 if token is missing or invalid.
    """
    if not credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")

    uid = verify_token(credentials.credentials)
    return await load_or_create_user(db, uid)


# ------------------------------------------------------------
# Role guards
# ------------------------------------------------------------
def require_role(*roles: str):
    async def guard(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=f"Requires role: {', '.join(roles)}")
        return user
    return guard


require_admin = require_role("admin")
require_writer = require_role("writer")
require_client = require_role("client")
