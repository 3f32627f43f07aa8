import math
from datetime import datetime
from typing import Optional

from pydantic import field_validator

from app.domains.artwork.models import ArtworkStatus
from app.shared.utils.response import CamelModel, UserSummary
from app.shared.utils.validation import (
    check_choice,
    check_length,
    escape_text,
    title_case,
)

MEDIUMS = (
    "Canvas",
    "Paper",
    "Wood",
    "Metal",
    "Glass",
    "Fabric",
    "Stone",
    "Ceramic",
    "Digital",
    "Plastic",
)
SIZES = ("Small", "Medium", "Large")
STYLES = (
    "Abstract",
    "Figurative",
    "Expressionism",
    "Impressionism",
    "Fine Art",
    "Contemporary",
    "Modern",
    "Classical",
)
TECHNIQUES = (
    "Oil Painting",
    "Watercolor",
    "Acrylic",
    "Digital",
    "Charcoal",
    "Ink",
    "Mixed Media",
    "Collage",
    "Spray Paint",
    "Pastel",
)

CHOICES = {
    "medium": MEDIUMS,
    "size": SIZES,
    "style": STYLES,
    "technique": TECHNIQUES,
}

MIN_PRICE = 0.01
MAX_PRICE = 1_000_000
PRICE_MESSAGE = "Price must be a positive number between 0.01 and 1,000,000"


def _to_number(value) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


class ArtworkUpdate(CamelModel):
    """Every field optional; supplied fields follow the creation rules."""

    title: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = None
    category: Optional[str] = None
    image_url: Optional[str] = None
    medium: Optional[str] = None
    size: Optional[str] = None
    style: Optional[str] = None
    technique: Optional[str] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = check_length(v.strip(), 1, 100, "Title must be between 1 and 100 characters")
        return escape_text(v)

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = check_length(
            v.strip(), 10, 1000, "Description must be between 10 and 1000 characters"
        )
        return escape_text(v)

    @field_validator("price", mode="before")
    @classmethod
    def validate_price(cls, v):
        if v is None:
            return v
        price = _to_number(v)
        if price is None or not MIN_PRICE <= price <= MAX_PRICE:
            raise ValueError(PRICE_MESSAGE)
        return price

    @field_validator("category")
    @classmethod
    def validate_category(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return escape_text(
            check_length(v.strip(), 0, 50, "Category must be at most 50 characters")
        )

    @field_validator("image_url")
    @classmethod
    def validate_image_url(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return check_length(v.strip(), 0, 500, "Image URL must be at most 500 characters")

    @field_validator("medium", "size", "style", "technique")
    @classmethod
    def validate_choice(cls, v: Optional[str], info) -> Optional[str]:
        if v is None:
            return v
        return check_choice(v, CHOICES[info.field_name], info.field_name.capitalize())


class ArtworkCreate(ArtworkUpdate):
    title: str
    description: str
    price: float
    medium: str
    size: str
    style: str
    technique: str


class ArtworkQuery(CamelModel):
    artist: Optional[int] = None
    medium: Optional[str] = None
    size: Optional[str] = None
    style: Optional[str] = None
    technique: Optional[str] = None
    price: Optional[float] = None
    search: Optional[str] = None

    @field_validator("artist", mode="before")
    @classmethod
    def validate_artist(cls, v):
        try:
            artist_id = int(v)
        except (TypeError, ValueError):
            artist_id = 0
        if artist_id < 1:
            raise ValueError("Invalid artist ID")
        return artist_id

    @field_validator("medium", "size", "style", "technique")
    @classmethod
    def validate_filter(cls, v: str, info) -> str:
        v = title_case(v)
        if v not in CHOICES[info.field_name]:
            raise ValueError(f"Invalid {info.field_name} filter")
        return v

    @field_validator("price", mode="before")
    @classmethod
    def validate_price(cls, v):
        price = _to_number(v)
        if price is None or price < 0:
            raise ValueError("Price filter must be a positive number")
        return price

    @field_validator("search")
    @classmethod
    def validate_search(cls, v: str) -> str:
        v = check_length(
            v.strip(), 1, 100, "Search term must be between 1 and 100 characters"
        )
        return escape_text(v)


class ArtworkResponse(CamelModel):
    id: int
    title: str
    description: Optional[str] = None
    image_url: str
    category: Optional[str] = None
    price: float
    artist_id: int
    artist: Optional[UserSummary] = None
    medium: Optional[str] = None
    size: Optional[str] = None
    style: Optional[str] = None
    technique: Optional[str] = None
    status: ArtworkStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ArtworkMutationResponse(CamelModel):
    message: str
    artwork: ArtworkResponse
