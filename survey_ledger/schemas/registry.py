"""Identity registry schemas."""

from pydantic import BaseModel, EmailStr, Field


class UserProfile(BaseModel):
    """A registered user."""

    wallet: str
    first_name: str
    paternal_last_name: str
    maternal_last_name: str
    phone: str = ""
    email: EmailStr
    timestamp: int


class CandidateProfile(BaseModel):
    """A registered candidate."""

    wallet: str
    name: str
    rfc: str
    timestamp: int


class UserRegister(BaseModel):
    """Request body for registering the caller as a user."""

    wallet: str | None = None
    first_name: str = Field(..., min_length=1, max_length=100)
    paternal_last_name: str = Field(..., min_length=1, max_length=100)
    maternal_last_name: str = Field(..., min_length=1, max_length=100)
    phone: str = Field("", max_length=32)
    email: EmailStr


class CandidateRegister(BaseModel):
    """Request body for registering the caller as a candidate."""

    wallet: str | None = None
    name: str = Field(..., min_length=1, max_length=200)
    rfc: str = Field(..., min_length=10, max_length=13)


class RegisterResponse(BaseModel):
    """Result of a register-if-absent call."""

    wallet: str
    registered: bool
