# allowance_tracker/schemas/user.py

from pydantic import BaseModel, EmailStr


class ParentRegister(BaseModel):
    email: EmailStr
    password: str
    first_name: str
    last_name: str
    family_name: str | None = None


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserResponse(BaseModel):
    id: int
    email: EmailStr
    first_name: str
    last_name: str
    role: str
    family_id: int | None = None

    class Config:
        from_attributes = True


class UserMeResponse(UserResponse):
    permissions: list[str]
    child_id: int | None = None


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


class PasswordChange(BaseModel):
    current_password: str
    new_password: str
