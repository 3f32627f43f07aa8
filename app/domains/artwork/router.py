from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Path, Request, status
from sqlalchemy.orm import Session

from app.domains.artwork import schemas
from app.domains.artwork.models import Artwork
from app.domains.artwork.service import ArtworkService
from app.domains.auth.router import get_current_user
from app.domains.auth.schemas import AuthUser
from app.shared.database.connection import get_db
from app.shared.uploads import artwork_image
from app.shared.utils.response import MessageResponse
from app.shared.utils.validation import read_payload, validate_payload

router = APIRouter(prefix="/artworks", tags=["artwork"])


def get_owned_artwork(
    artwork_id: int = Path(..., gt=0),
    current_user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Artwork:
    """Resolve the artwork and require the caller to be its artist."""
    return ArtworkService(db).get_owned(artwork_id, current_user.id)


@router.get("", response_model=List[schemas.ArtworkResponse])
def list_artworks(request: Request, db: Session = Depends(get_db)):
    """
    List artworks

    Optional filters: ``artist``, ``medium``, ``size``, ``style``,
    ``technique`` (case-insensitive exact match), ``price`` (at most) and
    ``search`` (title substring).
    """
    query = validate_payload(schemas.ArtworkQuery, dict(request.query_params))
    return ArtworkService(db).list_artworks(query)


@router.get("/mine", response_model=List[schemas.ArtworkResponse])
def get_my_artworks(
    current_user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Get current artist's artworks"""
    return ArtworkService(db).get_artwork_by_artist(current_user.id)


@router.get("/{artwork_id}", response_model=schemas.ArtworkResponse)
def get_artwork(
    artwork_id: int = Path(..., gt=0),
    db: Session = Depends(get_db),
):
    """Get artwork by ID"""
    return ArtworkService(db).get_artwork(artwork_id)


@router.post(
    "/create",
    response_model=schemas.ArtworkMutationResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_artwork(
    current_user: AuthUser = Depends(get_current_user),
    uploaded_url: Optional[str] = Depends(artwork_image),
    data: Dict[str, Any] = Depends(read_payload),
    db: Session = Depends(get_db),
):
    """
    Create an artwork owned by the caller

    Accepts JSON or multipart form data with an optional ``image`` file.

    **Possible errors:**
    - 400: Validation failed, image missing, or upload rejected
    - 401: Missing or invalid token
    """
    payload = validate_payload(schemas.ArtworkCreate, data)
    artwork = ArtworkService(db).create_artwork(payload, current_user.id, uploaded_url)
    return {"message": "Artwork created successfully", "artwork": artwork}


@router.put("/{artwork_id}", response_model=schemas.ArtworkMutationResponse)
def update_artwork(
    artwork: Artwork = Depends(get_owned_artwork),
    uploaded_url: Optional[str] = Depends(artwork_image),
    data: Dict[str, Any] = Depends(read_payload),
    db: Session = Depends(get_db),
):
    """
    Update artwork (owner only)

    **Possible errors:**
    - 403: Caller is not the artist
    - 404: Artwork not found
    """
    payload = validate_payload(schemas.ArtworkUpdate, data)
    updated = ArtworkService(db).update_artwork(artwork, payload, uploaded_url)
    return {"message": "Artwork updated successfully", "artwork": updated}


@router.delete("/{artwork_id}", response_model=MessageResponse)
def delete_artwork(
    artwork: Artwork = Depends(get_owned_artwork),
    db: Session = Depends(get_db),
):
    """Delete artwork (owner only)"""
    ArtworkService(db).delete_artwork(artwork)
    return {"message": "Artwork deleted successfully"}
