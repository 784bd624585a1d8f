from typing import Dict, List, Optional

from pydantic import BaseModel, EmailStr, Field, model_validator


class LoginRequest(BaseModel):
    """Login with either email or username."""

    email: Optional[str] = None
    username: Optional[str] = None
    password: str = Field(..., min_length=1)

    @model_validator(mode="after")
    def require_identifier(self) -> "LoginRequest":
        if not (self.email or self.username):
            raise ValueError("email or username is required")
        return self


class UserInfo(BaseModel):
    id: int
    name: str
    email: EmailStr
    username: str
    phone: Optional[str] = None
    status: str
    role: str

    class Config:
        from_attributes = True


class LoginResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    user: UserInfo


class MeResponse(BaseModel):
    user: UserInfo
    permissions: List[str] = Field(default_factory=list, description="Flattened 'module.action' capabilities")


class CurrentUser(BaseModel):
    """Lightweight representation of the authenticated user for RBAC checks."""

    id: int
    name: str
    email: str
    role: str
    permissions: Dict[str, Dict[str, bool]]
    token_jti: Optional[str] = None
