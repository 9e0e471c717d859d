from typing import List, Optional
from enum import Enum

from pydantic import BaseModel, EmailStr, Field

# ==================== ENUMS ====================

class Role(str, Enum):
    STUDENT = "student"
    INSTRUCTOR = "instructor"
    ADMIN = "admin"

class SelfServiceRole(str, Enum):
    """Roles a user may pick at registration"""
    STUDENT = "student"
    INSTRUCTOR = "instructor"

class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"
    UNSET = ""

class WorkingStatus(str, Enum):
    EMPLOYED = "employed"
    UNEMPLOYED = "unemployed"
    STUDENT = "student"
    FREELANCER = "freelancer"
    OTHER = "other"
    UNSET = ""

# ==================== AUTH MODELS ====================

class RegisterRequest(BaseModel):
    user_name: str = Field(..., min_length=1)
    user_email: EmailStr
    password: str = Field(..., min_length=6)
    role: SelfServiceRole = SelfServiceRole.STUDENT

class LoginRequest(BaseModel):
    user_email: EmailStr
    password: str = Field(..., min_length=1)

class OAuthRequest(BaseModel):
    user_name: str = Field(..., min_length=1)
    user_email: EmailStr
    provider: str = Field("oauth", min_length=1)

class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6)

# ==================== PROFILE MODELS ====================

class SocialLinks(BaseModel):
    linkedin: str = ""
    github: str = ""
    portfolio: str = ""
    other: str = ""

class ProfileUpdate(BaseModel):
    user_name: Optional[str] = Field(None, min_length=1)
    phone_number: Optional[str] = None
    place: Optional[str] = None
    gender: Optional[Gender] = None
    qualification: Optional[str] = None
    completion_graduation: Optional[str] = None
    working_status: Optional[WorkingStatus] = None
    skills: Optional[List[str]] = None
    social_links: Optional[SocialLinks] = None
    subscriptions: Optional[List[str]] = None
    desired_contents: Optional[List[str]] = None

class RoleUpdate(BaseModel):
    role: Role
