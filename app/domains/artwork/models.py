import enum
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Enum, Float, Integer, String, Text

from app.domains.users.models import enum_values
from app.shared.database.connection import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ArtworkStatus(str, enum.Enum):
    AVAILABLE = "available"
    SOLD = "sold"


class Artwork(Base):
    __tablename__ = "artworks"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    image_url = Column(String(500), nullable=False)
    category = Column(String(100), nullable=True)
    price = Column(Float, nullable=False, default=0)
    artist_id = Column(Integer, nullable=False, index=True)  # users.id, no FK
    medium = Column(String(50), nullable=True)
    size = Column(String(50), nullable=True)
    style = Column(String(50), nullable=True)
    technique = Column(String(100), nullable=True)
    status = Column(
        Enum(ArtworkStatus, name="artwork_status", values_callable=enum_values),
        nullable=False,
        default=ArtworkStatus.AVAILABLE,
    )
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
