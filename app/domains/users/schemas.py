from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import EmailStr, field_validator

from app.domains.users.models import ContactType, UserRole
from app.shared.utils.response import CamelModel
from app.shared.utils.validation import PHONE_RE, check_length, check_name, escape_text

MAX_EDUCATION_ENTRIES = 10
MAX_SKILL_ENTRIES = 20


def _text(value: str, min_len: int, max_len: int, label: str) -> str:
    message = f"{label} must be between {min_len} and {max_len} characters"
    return escape_text(check_length(value.strip(), min_len, max_len, message))


def _require_list(value: Any, label: str, max_items: int) -> Any:
    if not isinstance(value, list):
        raise ValueError(f"{label} must be an array")
    if len(value) > max_items:
        raise ValueError(f"{label} must be an array with maximum {max_items} entries")
    return value


# =============================================================================
# Profile sections
# =============================================================================


class EducationEntry(CamelModel):
    country: str
    university: str
    degree: str
    major: str
    graduation_year: int

    @field_validator("country")
    @classmethod
    def validate_country(cls, v: str) -> str:
        return _text(v, 2, 50, "Country")

    @field_validator("university", "degree", "major")
    @classmethod
    def validate_school_fields(cls, v: str, info) -> str:
        return _text(v, 2, 100, info.field_name.capitalize())

    @field_validator("graduation_year", mode="before")
    @classmethod
    def validate_graduation_year(cls, v):
        latest = date.today().year + 10
        try:
            year = int(v)
        except (TypeError, ValueError):
            year = None
        if isinstance(v, bool) or year is None or not 1950 <= year <= latest:
            raise ValueError("Graduation year must be between 1950 and future 10 years")
        return year


class SkillEntry(CamelModel):
    name: str
    description: Optional[str] = None
    efficiency: int

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _text(v, 2, 50, "Skill name")

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return _text(v, 5, 200, "Skill description")

    @field_validator("efficiency", mode="before")
    @classmethod
    def validate_efficiency(cls, v):
        if isinstance(v, bool) or not isinstance(v, (int, str)):
            raise ValueError("Efficiency must be between 0 and 100")
        try:
            value = int(v)
        except ValueError:
            raise ValueError("Efficiency must be between 0 and 100")
        if not 0 <= value <= 100:
            raise ValueError("Efficiency must be between 0 and 100")
        return value


class ContactInfo(CamelModel):
    email: Optional[EmailStr] = None
    linkedin: Optional[str] = None
    portfolio: Optional[str] = None
    whatsapp: Optional[str] = None
    instagram: Optional[str] = None

    @field_validator("whatsapp")
    @classmethod
    def validate_whatsapp(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not PHONE_RE.match(v):
            raise ValueError("Invalid WhatsApp/phone number format")
        return v

    @field_validator("linkedin")
    @classmethod
    def validate_linkedin(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return check_length(v.strip(), 5, 200, "LinkedIn URL must be reasonable length")

    @field_validator("portfolio")
    @classmethod
    def validate_portfolio(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return check_length(v.strip(), 5, 200, "Portfolio URL must be reasonable length")

    @field_validator("instagram")
    @classmethod
    def validate_instagram(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return check_length(
            v.strip(), 2, 200, "Instagram handle/URL must be reasonable length"
        )


class ContactLink(CamelModel):
    type: ContactType
    value: str

    @field_validator("value")
    @classmethod
    def validate_value(cls, v: str) -> str:
        return check_length(
            v.strip(), 1, 200, "Contact value must be between 1 and 200 characters"
        )


# =============================================================================
# Update payloads
# =============================================================================


class EducationUpdate(CamelModel):
    education: List[EducationEntry]

    @field_validator("education", mode="before")
    @classmethod
    def validate_education(cls, v):
        return _require_list(v, "Education", MAX_EDUCATION_ENTRIES)


class SkillsUpdate(CamelModel):
    skills: List[SkillEntry]

    @field_validator("skills", mode="before")
    @classmethod
    def validate_skills(cls, v):
        return _require_list(v, "Skills", MAX_SKILL_ENTRIES)


class ContactUpdate(CamelModel):
    contact_info: Optional[ContactInfo] = None
    contacts: Optional[List[ContactLink]] = None

    @field_validator("contact_info", mode="before")
    @classmethod
    def validate_contact_info(cls, v):
        if v is not None and not isinstance(v, dict):
            raise ValueError("Contact info must be an object")
        return v

    @field_validator("contacts", mode="before")
    @classmethod
    def validate_contacts(cls, v):
        if v is not None and not isinstance(v, list):
            raise ValueError("Contacts must be an array")
        return v


class ProfileUpdate(CamelModel):
    name: Optional[str] = None
    headline: Optional[str] = None
    profile_pic: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return check_name(v)

    @field_validator("headline")
    @classmethod
    def validate_headline(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return _text(v, 5, 200, "Headline")

    @field_validator("profile_pic")
    @classmethod
    def validate_profile_pic(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return check_length(v.strip(), 1, 500, "Profile picture URL is too long")


# =============================================================================
# Responses
# =============================================================================


class UserProfileResponse(CamelModel):
    """Stored profile; the password hash is never part of it."""

    id: int
    name: str
    email: str
    role: UserRole
    profile_pic: Optional[str] = None
    headline: Optional[str] = None
    education: List[Dict[str, Any]] = []
    skills: List[Dict[str, Any]] = []
    contact_info: Dict[str, Any] = {}
    contacts: List[Dict[str, Any]] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("education", "skills", "contacts", mode="before")
    @classmethod
    def default_list(cls, v):
        return v or []

    @field_validator("contact_info", mode="before")
    @classmethod
    def default_dict(cls, v):
        return v or {}
