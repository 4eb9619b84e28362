"""Request and response bodies of the browser-facing API."""

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    username: str = ""
    password: str = ""


class LoginResponse(BaseModel):
    success: bool = True
    message: str = "Login successful"
    session_token: str = Field(serialization_alias="sessionToken")


class SessionStatus(BaseModel):
    """Answer of GET /api/session for a valid session."""

    authenticated: bool = True
    session_age: int = Field(serialization_alias="sessionAge")  # milliseconds
    timestamp: int  # creation time, epoch ms
