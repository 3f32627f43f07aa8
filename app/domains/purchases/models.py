import enum

from sqlalchemy import Column, DateTime, Enum, Float, Integer, String

from app.domains.artwork.models import utcnow
from app.domains.users.models import enum_values
from app.shared.database.connection import Base

ANONYMOUS_BUYER_NAME = "Anonymous Buyer"
ANONYMOUS_BUYER_EMAIL = "anonymous@example.com"


class PurchaseStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Purchase(Base):
    __tablename__ = "purchases"

    id = Column(Integer, primary_key=True, index=True)
    buyer_id = Column(Integer, nullable=True, index=True)  # null for anonymous buyers
    buyer_name = Column(String(100), nullable=False, default=ANONYMOUS_BUYER_NAME)
    buyer_email = Column(String(255), nullable=False, default=ANONYMOUS_BUYER_EMAIL)
    seller_id = Column(Integer, nullable=False, index=True)
    artwork_id = Column(Integer, nullable=False, index=True)
    amount = Column(Float, nullable=False)
    status = Column(
        Enum(PurchaseStatus, name="purchase_status", values_callable=enum_values),
        nullable=False,
        default=PurchaseStatus.PENDING,
    )
    payment_method = Column(String(50), nullable=False, default="credit_card")
    transaction_id = Column(String(64), unique=True, nullable=True)
    purchase_date = Column(DateTime(timezone=True), default=utcnow)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
