from fastapi import APIRouter, Depends, HTTPException, status

from core.exceptions import RecordStoreError
from core.security import get_current_user
from models.user import User
from schemas.profile import ConnectionsResponse, MatchSnapshotRead
from services.connections import list_connections

router = APIRouter(prefix="/connections", tags=["connections"])


@router.get("", response_model=ConnectionsResponse, summary="Mutual matches, sorted by name")
async def get_connections(current_user: User = Depends(get_current_user)):
    try:
        result = await list_connections(current_user.id)
    except RecordStoreError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    return ConnectionsResponse(
        connections=[MatchSnapshotRead.model_validate(c) for c in result.connections],
        error=result.error,
    )
