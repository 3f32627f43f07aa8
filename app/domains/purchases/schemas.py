from datetime import datetime
from typing import Optional

from pydantic import EmailStr, field_validator

from app.domains.purchases.models import PurchaseStatus
from app.shared.utils.response import CamelModel, UserSummary
from app.shared.utils.validation import check_length, escape_text


class PurchaseCreate(CamelModel):
    artwork_id: int
    buyer_name: Optional[str] = None
    buyer_email: Optional[EmailStr] = None

    @field_validator("artwork_id", mode="before")
    @classmethod
    def validate_artwork_id(cls, v):
        if isinstance(v, bool):
            raise ValueError("Invalid artwork ID")
        try:
            artwork_id = int(v)
        except (TypeError, ValueError):
            raise ValueError("Invalid artwork ID")
        if artwork_id < 1:
            raise ValueError("Invalid artwork ID")
        return artwork_id

    @field_validator("buyer_name")
    @classmethod
    def validate_buyer_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = check_length(
            v.strip(), 2, 50, "Buyer name must be between 2 and 50 characters"
        )
        return escape_text(v)

    @field_validator("buyer_email", mode="before")
    @classmethod
    def blank_email(cls, v):
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v

    @field_validator("buyer_email")
    @classmethod
    def normalize_email(cls, v: Optional[str]) -> Optional[str]:
        return v.lower() if v else v


class PurchaseArtwork(CamelModel):
    id: int
    title: str
    image_url: str
    price: Optional[float] = None
    description: Optional[str] = None


class PurchaseResponse(CamelModel):
    id: int
    buyer_id: Optional[int] = None
    buyer: Optional[UserSummary] = None
    buyer_name: str
    buyer_email: str
    seller_id: int
    seller: Optional[UserSummary] = None
    artwork_id: int
    artwork: Optional[PurchaseArtwork] = None
    amount: float
    status: PurchaseStatus
    payment_method: str
    transaction_id: Optional[str] = None
    purchase_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PurchaseCreatedResponse(CamelModel):
    message: str
    purchase: PurchaseResponse
