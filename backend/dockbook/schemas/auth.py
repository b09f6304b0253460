from pydantic import BaseModel, EmailStr
from ..core.permissions import Role


class LoginIn(BaseModel):
    email: EmailStr
    password: str


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserOut(BaseModel):
    id: int
    email: str
    full_name: str | None
    user_type: Role
    company_id: int | None
    class Config:
        from_attributes = True
