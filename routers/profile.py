import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db
from core.exceptions import RecordStoreError, StaleReferenceError
from core.security import get_current_user
from models.profile import UserProfile
from models.user import User
from schemas.profile import (
    AddCityRequest,
    AgeRangeRequest,
    DeleteAccountResponse,
    ProfileRead,
)
from services.profiles import (
    add_interested_city,
    delete_account,
    require_profile,
    update_age_range,
)
from utils.s3 import build_photo_urls

logger = logging.getLogger("uvicorn.error")

router = APIRouter(prefix="/profile", tags=["profile"])

PROFILE_UNAVAILABLE = "Could not load your profile. Try again."


async def _read(db: AsyncSession, profile: UserProfile) -> ProfileRead:
    try:
        photos = await build_photo_urls(profile.user_id, db)
    except SQLAlchemyError as e:
        logger.warning("Error loading photos of %s: %s", profile.user_id, e)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=PROFILE_UNAVAILABLE)
    return ProfileRead(
        user_id=profile.user_id,
        name=profile.name,
        age=profile.age,
        gender=profile.gender,
        home_city=profile.home_city,
        cities=profile.cities or [],
        bio=profile.bio,
        interests=profile.interests or [],
        desired_genders=profile.desired_genders or [],
        desired_age_min=profile.desired_age_min,
        desired_age_max=profile.desired_age_max,
        photos=photos,
        created_at=profile.created_at,
    )


@router.get("/me", response_model=ProfileRead, summary="Own private profile")
async def get_my_profile(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        profile = await require_profile(db, current_user.id)
    except StaleReferenceError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")
    except SQLAlchemyError as e:
        logger.warning("Error loading profile of %s: %s", current_user.id, e)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=PROFILE_UNAVAILABLE)
    return await _read(db, profile)


@router.post("/me/cities", response_model=ProfileRead, summary="Add an interested city")
async def add_city(
    payload: AddCityRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        profile = await add_interested_city(db, current_user.id, payload.city.strip())
    except StaleReferenceError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")
    except RecordStoreError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    return await _read(db, profile)


@router.put("/me/age-range", response_model=ProfileRead, summary="Change the desired age range")
async def set_age_range(
    payload: AgeRangeRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        profile = await update_age_range(
            db, current_user.id, payload.desired_age_min, payload.desired_age_max
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except StaleReferenceError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")
    except RecordStoreError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    return await _read(db, profile)


@router.delete("/me", response_model=DeleteAccountResponse, summary="Delete the account and everything it owns")
async def delete_me(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    failed = await delete_account(db, current_user.id)
    return DeleteAccountResponse(deleted=not failed, failed_steps=failed)
