# core/security.py
from datetime import datetime, timedelta

from fastapi import HTTPException, Depends
from fastapi.security import OAuth2PasswordBearer
from jose import jwt, JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from starlette import status

from core.config import settings
from core.database import get_db
from core.exceptions import IdentityUnavailableError
from models.user import User

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth")

ALGORITHM = "HS256"


def create_access_token(user_id: int) -> tuple[str, datetime]:
    expires = datetime.utcnow() + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    token = jwt.encode({"user_id": user_id, "exp": expires}, settings.SECRET_KEY, algorithm=ALGORITHM)
    return token, expires


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])
        user_id: int = payload.get("user_id")
        if user_id is None:
            raise credentials_exception
    except JWTError:
        raise credentials_exception

    stmt = select(User).where(User.id == user_id)
    result = await db.execute(stmt)
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return user


def verify_identity_token(identity_token: str) -> str:
    """
    Validate the token handed out by the sign-in provider and return its
    stable subject. The subject becomes ``User.identity_subject`` and scopes
    every private record of the user.

    Raises HTTPException(403) on a bad signature or expired token and
    IdentityUnavailableError when the token carries no subject.
    """
    try:
        payload = jwt.decode(
            identity_token,
            settings.IDENTITY_PROVIDER_SECRET,
            algorithms=[ALGORITHM],
            options={"verify_aud": False},
        )
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid identity token"
        )

    subject = payload.get("sub")
    if not subject:
        raise IdentityUnavailableError("Missing 'sub' in identity token")
    return str(subject)
