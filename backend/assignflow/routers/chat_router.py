from fastapi import APIRouter, Depends, status

from assignflow.core.auth import get_current_user
from assignflow.core.dependencies import get_chats
from assignflow.models.chat_model import SendMessageRequest
from assignflow.models.user_model import User
from assignflow.services.chat_service import ChatService

router = APIRouter(prefix="/chat", tags=["Chat"])


@router.get("/conversations")
async def list_conversations(
    current_user: User = Depends(get_current_user),
    chats: ChatService = Depends(get_chats),
):
    return await chats.list_conversations(current_user)


@router.get("/conversations/{conversation_id}/messages")
async def get_messages(
    conversation_id: str,
    current_user: User = Depends(get_current_user),
    chats: ChatService = Depends(get_chats),
):
    return await chats.get_messages(conversation_id, current_user)


@router.post("/conversations/{conversation_id}/messages", status_code=status.HTTP_201_CREATED)
async def send_message(
    conversation_id: str,
    payload: SendMessageRequest,
    current_user: User = Depends(get_current_user),
    chats: ChatService = Depends(get_chats),
):
    message = await chats.send_message(conversation_id, current_user, payload.text)
    return message.model_dump()


@router.put("/conversations/{conversation_id}/read")
async def mark_conversation_read(
    conversation_id: str,
    current_user: User = Depends(get_current_user),
    chats: ChatService = Depends(get_chats),
):
    await chats.mark_read(conversation_id, current_user)
    return {"message": "Conversation marked as read"}
