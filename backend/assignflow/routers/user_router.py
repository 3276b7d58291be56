from fastapi import APIRouter, Depends

from assignflow.core.auth import get_current_user
from assignflow.models.user_model import User, public_user

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me")
async def get_me(current_user: User = Depends(get_current_user)):
    return public_user(current_user)
