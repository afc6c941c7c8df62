from datetime import datetime
from typing import Optional
from pydantic import BaseModel, EmailStr, Field, field_validator
from portal.models.user import UserType


# ---------------------------------------------------------
# NESTED DEPARTMENT REFERENCE
# ---------------------------------------------------------
class DepartmentRef(BaseModel):
    id: int
    name: str
    code: Optional[str] = None

    class Config:
        from_attributes = True


# ---------------------------------------------------------
# BASE
# ---------------------------------------------------------
class UserBase(BaseModel):
    username: str = Field(min_length=1, max_length=64)
    email: EmailStr
    first_name: Optional[str] = Field(default=None, alias="firstName")
    last_name: Optional[str] = Field(default=None, alias="lastName")

    class Config:
        populate_by_name = True


# ---------------------------------------------------------
# CREATE USER (Admin creates any user)
# ---------------------------------------------------------
class UserCreate(UserBase):
    password: str = Field(min_length=8)
    user_type: UserType = Field(alias="userType")
    department_id: Optional[int] = Field(default=None, alias="departmentId")  # Required for HEAD/STAFF

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "examples": [
                {
                    "username": "jdoe",
                    "email": "jdoe@psu.edu",
                    "firstName": "John",
                    "lastName": "Doe",
                    "password": "password123",
                    "userType": "STAFF",
                    "departmentId": 3
                }
            ]
        }


# ---------------------------------------------------------
# UPDATE USER (Admin edits, or users edit their own profile)
# ---------------------------------------------------------
class UserUpdate(BaseModel):
    username: Optional[str] = Field(default=None, min_length=1, max_length=64)
    email: Optional[EmailStr] = None
    first_name: Optional[str] = Field(default=None, alias="firstName")
    last_name: Optional[str] = Field(default=None, alias="lastName")
    password: Optional[str] = Field(default=None, min_length=8)
    user_type: Optional[UserType] = Field(default=None, alias="userType")
    department_id: Optional[int] = Field(default=None, alias="departmentId")

    class Config:
        populate_by_name = True

    @field_validator("department_id", mode="before")
    @classmethod
    def blank_department_is_none(cls, value):
        # The edit form posts "" when no department is selected
        if value == "":
            return None
        return value


# ---------------------------------------------------------
# READ USER (response)
# ---------------------------------------------------------
class UserRead(BaseModel):
    id: int
    username: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    user_type: UserType
    department_id: Optional[int] = None
    department: Optional[DepartmentRef] = None
    avatar: Optional[str] = None
    is_verified: bool = False
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
