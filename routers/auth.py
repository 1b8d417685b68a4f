# routers/auth.py
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from core.database import get_db
from core.exceptions import IdentityUnavailableError
from core.security import create_access_token, verify_identity_token
from models.profile import UserProfile
from models.user import User
from schemas.auth import IdentityTokenSchema, TokenResponse

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post(
    "/",
    response_model=TokenResponse,
    summary="Sign in with the identity provider token and get a JWT"
)
async def login(
    payload: IdentityTokenSchema,
    db: AsyncSession = Depends(get_db),
):
    try:
        subject = verify_identity_token(payload.identity_token)
    except IdentityUnavailableError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    result = await db.execute(select(User).where(User.identity_subject == subject))
    user = result.scalar_one_or_none()
    if not user:
        user = User(identity_subject=subject)
        db.add(user)
        await db.commit()
        await db.refresh(user)

    access_token, expires = create_access_token(user.id)

    res = await db.execute(select(UserProfile.id).where(UserProfile.user_id == user.id))
    onboarding_complete = res.first() is not None

    return TokenResponse(
        access_token=access_token,
        token_type="bearer",
        onboarding_complete=onboarding_complete,
        expires_in_ms=int(expires.timestamp() * 1000),
    )
