import enum

from sqlalchemy import Column, Integer, String, DateTime, Boolean, Text, Enum
from taskhub.core.database import Base
from taskhub.core.deadlines import utcnow


class Theme(str, enum.Enum):
    light = "light"
    dark = "dark"
    auto = "auto"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    # stored lower-cased, so the unique index is case-insensitive
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)

    phone = Column(String(50), nullable=True)
    bio = Column(Text, nullable=True)
    location = Column(String(255), nullable=True)
    job_title = Column(String(255), nullable=True)
    company = Column(String(255), nullable=True)
    website = Column(String(255), nullable=True)
    profile_picture = Column(String(500), nullable=True)

    theme = Column(
        Enum(Theme, native_enum=False, length=10, values_callable=lambda e: [m.value for m in e]),
        default=Theme.light,
        nullable=False,
    )
    notifications = Column(Boolean, default=True, nullable=False)
    email_updates = Column(Boolean, default=True, nullable=False)
    language = Column(String(10), default="en", nullable=False)

    is_active = Column(Boolean, default=True, nullable=False)
    last_login = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<User {self.email}>"


def normalize_email(email: str) -> str:
    return email.strip().lower()
