from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class ProfileRead(BaseModel):
    user_id: int
    name: str
    age: int
    gender: str
    home_city: str
    cities: List[str] = Field(default_factory=list, description="Interested cities")
    bio: Optional[str] = None
    interests: List[str] = Field(default_factory=list)
    desired_genders: List[str] = Field(default_factory=list)
    desired_age_min: int
    desired_age_max: int
    photos: List[str] = Field(default_factory=list, description="Photo URLs in display order")
    created_at: datetime

    class Config:
        from_attributes = True


class MatchSnapshotRead(BaseModel):
    """What a partner sees: fixed when the match is made."""
    user_id: int
    name: str
    age: int
    home_city: str
    bio: str
    interests: List[str] = Field(default_factory=list)
    photos: List[str] = Field(default_factory=list)

    class Config:
        from_attributes = True


class AddCityRequest(BaseModel):
    city: str = Field(..., min_length=1, max_length=100)


class AgeRangeRequest(BaseModel):
    desired_age_min: int = Field(..., ge=18, le=99)
    desired_age_max: int = Field(..., ge=18, le=99)


class DeleteAccountResponse(BaseModel):
    deleted: bool
    failed_steps: List[str] = Field(default_factory=list)


class ConnectionsResponse(BaseModel):
    connections: List[MatchSnapshotRead]
    error: Optional[str] = None
