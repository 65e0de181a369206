from pydantic import Field
from typing import Optional
from datetime import datetime

from taskhub.models.user import Theme
from taskhub.schemas.base import CamelModel


class UserRegister(CamelModel):
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    email: Optional[str] = Field(None, max_length=255)
    password: Optional[str] = None


class UserLogin(CamelModel):
    email: str
    password: str


class UserProfile(CamelModel):
    id: int
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    job_title: Optional[str] = None
    company: Optional[str] = None
    website: Optional[str] = None
    profile_picture: Optional[str] = None
    theme: Theme
    notifications: bool
    email_updates: bool
    language: str
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class ProfileUpdate(CamelModel):
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    email: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    bio: Optional[str] = None
    location: Optional[str] = Field(None, max_length=255)
    job_title: Optional[str] = Field(None, max_length=255)
    company: Optional[str] = Field(None, max_length=255)
    website: Optional[str] = Field(None, max_length=255)
    profile_picture: Optional[str] = Field(None, max_length=500)


class SettingsUpdate(CamelModel):
    theme: Optional[Theme] = None
    notifications: Optional[bool] = None
    email_updates: Optional[bool] = None
    language: Optional[str] = Field(None, min_length=2, max_length=10)


class AuthResponse(CamelModel):
    message: str
    token: str
    user: UserProfile


class ProfileResponse(CamelModel):
    message: str
    user: UserProfile
