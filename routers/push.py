from fastapi import APIRouter, Depends

from core.security import get_current_user
from models.user import User
from schemas.chat import PushNotification, PushResponse
from services.event_runtime import runtimes

router = APIRouter(prefix="/push", tags=["push"])


@router.post("", response_model=PushResponse, summary="Record-change notification for the active chat")
async def receive_push(
    payload: PushNotification,
    current_user: User = Depends(get_current_user),
):
    runtime = runtimes.get(current_user.id)
    if runtime is None:
        return PushResponse(merged=False)
    merged = await runtime.handle_push(payload.record_type, payload.record_id)
    return PushResponse(merged=merged)
