import enum

from sqlalchemy import JSON, Column, DateTime, Enum, Integer, String
from sqlalchemy.sql import func

from app.shared.database.connection import Base


class UserRole(str, enum.Enum):
    BUYER = "buyer"
    SELLER = "seller"


class ContactType(str, enum.Enum):
    EMAIL = "email"
    LINKEDIN = "linkedin"
    PORTFOLIO = "portfolio"
    WHATSAPP = "whatsapp"
    INSTAGRAM = "instagram"
    WEBSITE = "website"
    OTHER = "other"


def enum_values(enum_cls):
    return [member.value for member in enum_cls]


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password = Column(String(255), nullable=False)  # bcrypt hash
    role = Column(
        Enum(UserRole, name="user_role", values_callable=enum_values),
        nullable=False,
    )

    profile_pic = Column(String(500), nullable=True)
    headline = Column(String(255), nullable=True)

    # Document-shaped profile sections, always replaced wholesale
    education = Column(JSON, nullable=False, default=list)
    skills = Column(JSON, nullable=False, default=list)
    contact_info = Column(JSON, nullable=False, default=dict)
    contacts = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
