from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Path
from sqlalchemy.orm import Session

from app.core.exceptions import ForbiddenError
from app.domains.auth.router import get_current_user
from app.domains.auth.schemas import AuthUser
from app.domains.users import schemas
from app.domains.users.service import UserService
from app.shared.database.connection import get_db
from app.shared.uploads import profile_picture
from app.shared.utils.validation import read_payload, validate_payload

router = APIRouter(prefix="/users", tags=["users"])


def get_profile_owner(
    user_id: int = Path(..., gt=0),
    current_user: AuthUser = Depends(get_current_user),
) -> AuthUser:
    """Only the profile's owner may change it."""
    if current_user.id != user_id:
        raise ForbiddenError("You can only update your own profile")
    return current_user


@router.get("/{user_id}", response_model=schemas.UserProfileResponse)
def read_user(
    user_id: int = Path(..., gt=0),
    current_user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return UserService(db).get_user_by_id(user_id)


@router.put("/{user_id}/education", response_model=schemas.UserProfileResponse)
def update_education(
    payload: schemas.EducationUpdate,
    user_id: int = Path(..., gt=0),
    owner: AuthUser = Depends(get_profile_owner),
    db: Session = Depends(get_db),
):
    """Replace the education list (max 10 entries)"""
    return UserService(db).update_education(user_id, payload.education)


@router.put("/{user_id}/skills", response_model=schemas.UserProfileResponse)
def update_skills(
    payload: schemas.SkillsUpdate,
    user_id: int = Path(..., gt=0),
    owner: AuthUser = Depends(get_profile_owner),
    db: Session = Depends(get_db),
):
    """Replace the skills list (max 20 entries)"""
    return UserService(db).update_skills(user_id, payload.skills)


@router.put("/{user_id}/contact", response_model=schemas.UserProfileResponse)
def update_contact(
    payload: schemas.ContactUpdate,
    user_id: int = Path(..., gt=0),
    owner: AuthUser = Depends(get_profile_owner),
    db: Session = Depends(get_db),
):
    """
    Merge contactInfo fields and/or replace the contacts list

    **Possible errors:**
    - 400: No contact payload provided
    """
    return UserService(db).update_contact(user_id, payload)


@router.put("/{user_id}/profile", response_model=schemas.UserProfileResponse)
def update_profile(
    user_id: int = Path(..., gt=0),
    owner: AuthUser = Depends(get_profile_owner),
    uploaded_url: Optional[str] = Depends(profile_picture),
    data: Dict[str, Any] = Depends(read_payload),
    db: Session = Depends(get_db),
):
    """
    Update name, headline and profile picture

    Accepts JSON or multipart form data; an uploaded ``profilePic`` file
    takes precedence over a ``profilePic`` URL field.
    """
    payload = validate_payload(schemas.ProfileUpdate, data)
    changes = payload.model_dump(exclude_none=True)
    if uploaded_url:
        changes["profile_pic"] = uploaded_url
    return UserService(db).update_profile(user_id, changes)
