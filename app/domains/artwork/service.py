import logging
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.exceptions import ForbiddenError, MissingImageError, NotFoundError
from app.domains.artwork import schemas
from app.domains.artwork.models import Artwork, ArtworkStatus
from app.domains.users.models import User

logger = logging.getLogger(__name__)


def user_summaries(db: Session, user_ids: Iterable[Optional[int]]) -> Dict[int, dict]:
    """Load {id, name, email} for each referenced user in one query."""
    ids = {user_id for user_id in user_ids if user_id is not None}
    if not ids:
        return {}
    users = db.query(User).filter(User.id.in_(ids)).all()
    return {u.id: {"id": u.id, "name": u.name, "email": u.email} for u in users}


class ArtworkService:
    def __init__(self, db: Session):
        self.db = db

    def _serialize(self, artwork: Artwork, artists: Dict[int, dict]) -> dict:
        return {
            "id": artwork.id,
            "title": artwork.title,
            "description": artwork.description,
            "image_url": artwork.image_url,
            "category": artwork.category,
            "price": artwork.price,
            "artist_id": artwork.artist_id,
            # Dangling artist reference renders as null
            "artist": artists.get(artwork.artist_id),
            "medium": artwork.medium,
            "size": artwork.size,
            "style": artwork.style,
            "technique": artwork.technique,
            "status": artwork.status,
            "created_at": artwork.created_at,
            "updated_at": artwork.updated_at,
        }

    def _serialize_many(self, artworks: List[Artwork]) -> List[dict]:
        artists = user_summaries(self.db, (a.artist_id for a in artworks))
        return [self._serialize(artwork, artists) for artwork in artworks]

    def serialize(self, artwork: Artwork) -> dict:
        return self._serialize(artwork, user_summaries(self.db, [artwork.artist_id]))

    # =========================================================================
    # Reads
    # =========================================================================

    def list_artworks(self, query: schemas.ArtworkQuery) -> List[dict]:
        """List artworks matching the query, newest first"""
        q = self.db.query(Artwork)
        if query.artist is not None:
            q = q.filter(Artwork.artist_id == query.artist)
        # Bound parameters, so values are compared literally
        for field in ("medium", "size", "style", "technique"):
            value = getattr(query, field)
            if value is not None:
                q = q.filter(func.lower(getattr(Artwork, field)) == value.lower())
        if query.price is not None:
            q = q.filter(Artwork.price >= 0, Artwork.price <= query.price)
        if query.search is not None:
            q = q.filter(Artwork.title.icontains(query.search, autoescape=True))

        artworks = q.order_by(Artwork.created_at.desc(), Artwork.id.desc()).all()
        return self._serialize_many(artworks)

    def get_artwork_by_artist(self, artist_id: int) -> List[dict]:
        """Get artworks by artist"""
        artworks = (
            self.db.query(Artwork)
            .filter(Artwork.artist_id == artist_id)
            .order_by(Artwork.created_at.desc(), Artwork.id.desc())
            .all()
        )
        return self._serialize_many(artworks)

    def get_model(self, artwork_id: int) -> Artwork:
        artwork = self.db.get(Artwork, artwork_id)
        if artwork is None:
            raise NotFoundError("Artwork")
        return artwork

    def get_artwork(self, artwork_id: int) -> dict:
        """Get artwork by ID"""
        return self.serialize(self.get_model(artwork_id))

    def get_owned(self, artwork_id: int, artist_id: int) -> Artwork:
        """Fetch an artwork the caller is allowed to modify."""
        artwork = self.get_model(artwork_id)
        if artwork.artist_id != artist_id:
            logger.warning(
                f"User {artist_id} attempted to modify artwork {artwork_id} "
                f"owned by {artwork.artist_id}"
            )
            raise ForbiddenError("Not authorized")
        return artwork

    # =========================================================================
    # Writes
    # =========================================================================

    def create_artwork(
        self,
        payload: schemas.ArtworkCreate,
        artist_id: int,
        uploaded_url: Optional[str] = None,
    ) -> dict:
        """
        Create an artwork owned by ``artist_id``.

        An uploaded file's URL wins over ``imageUrl``; neither is an error.
        """
        image_url = uploaded_url or payload.image_url
        if not image_url:
            raise MissingImageError()

        artwork = Artwork(
            title=payload.title,
            description=payload.description,
            image_url=image_url,
            category=payload.category,
            price=payload.price,
            artist_id=artist_id,
            medium=payload.medium,
            size=payload.size,
            style=payload.style,
            technique=payload.technique,
            status=ArtworkStatus.AVAILABLE,
        )
        self.db.add(artwork)
        self.db.commit()
        self.db.refresh(artwork)

        logger.info(f"Artwork {artwork.id} created by user {artist_id}")
        return self.serialize(artwork)

    def update_artwork(
        self,
        artwork: Artwork,
        payload: schemas.ArtworkUpdate,
        uploaded_url: Optional[str] = None,
    ) -> dict:
        """Update artwork (caller already checked as the owner)"""
        update_data = payload.model_dump(exclude_none=True)
        image_url = uploaded_url or update_data.pop("image_url", None)
        if image_url:
            update_data["image_url"] = image_url

        for field, value in update_data.items():
            setattr(artwork, field, value)

        self.db.add(artwork)
        self.db.commit()
        self.db.refresh(artwork)

        logger.info(f"Artwork {artwork.id} updated: {sorted(update_data)}")
        return self.serialize(artwork)

    def delete_artwork(self, artwork: Artwork) -> None:
        """Delete artwork (caller already checked as the owner)"""
        artwork_id = artwork.id
        self.db.delete(artwork)
        self.db.commit()
        logger.info(f"Artwork {artwork_id} deleted")
