from pydantic import BaseModel, EmailStr, Field, model_validator
from typing import Optional

from portal.models.user import UserType
from portal.schemas.user import UserRead

MIN_PASSWORD_LENGTH = 8


# -------------------------------------------------------------------
# LOGIN REQUEST
# -------------------------------------------------------------------
class LoginRequest(BaseModel):
    email: EmailStr
    password: str
    remember_me: bool = Field(default=False, alias="rememberMe")

    class Config:
        populate_by_name = True


# -------------------------------------------------------------------
# SIGNUP REQUEST
# (Self-registration for HEAD / STAFF; admins are created by admins)
# -------------------------------------------------------------------
class SignupRequest(BaseModel):
    username: str
    first_name: Optional[str] = Field(default=None, alias="firstName")
    last_name: Optional[str] = Field(default=None, alias="lastName")
    email: EmailStr
    password: str
    confirm_password: str = Field(alias="confirmPassword")
    department: Optional[int] = None
    user_type: UserType = Field(alias="userType")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "examples": [
                {
                    "username": "asmith",
                    "firstName": "Alice",
                    "lastName": "Smith",
                    "email": "asmith@psu.edu",
                    "password": "password123",
                    "confirmPassword": "password123",
                    "department": 1,
                    "userType": "STAFF"
                }
            ]
        }

    @model_validator(mode="after")
    def check_form(self):
        if not self.username.strip():
            raise ValueError("Username is required")
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        if len(self.password) < MIN_PASSWORD_LENGTH:
            raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        if self.user_type == UserType.ADMIN:
            raise ValueError("Administrator accounts cannot be self-registered")
        if self.department is None:
            raise ValueError("Department is required")
        return self


# -------------------------------------------------------------------
# EMAIL VERIFICATION
# -------------------------------------------------------------------
class VerifyEmailRequest(BaseModel):
    token: str


# -------------------------------------------------------------------
# TOKEN + USER DETAILS (Used for login / verification responses)
# -------------------------------------------------------------------
class TokenWithUser(BaseModel):
    token: str
    token_type: str = "bearer"
    expires_in: Optional[int] = None
    user: UserRead
    redirect: Optional[str] = None


class VerifyTokenResponse(BaseModel):
    valid: bool = True
    user: UserRead


class MeResponse(BaseModel):
    user: UserRead


class SignupResponse(BaseModel):
    message: str
    user: UserRead
