from typing import Literal

from pydantic import BaseModel, Field


class IdentityTokenSchema(BaseModel):
    """
    Token issued by the sign-in provider; its ``sub`` claim identifies the user.
    """
    identity_token: str = Field(..., min_length=1)


class TokenResponse(BaseModel):
    access_token: str
    token_type: Literal["bearer"]
    onboarding_complete: bool
    expires_in_ms: int
