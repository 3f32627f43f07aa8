import logging
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from app.core.exceptions import BadRequestError, NotFoundError
from app.domains.users import schemas
from app.domains.users.models import User

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, db: Session):
        self.db = db

    def get_user_by_id(self, user_id: int) -> User:
        user = self.db.get(User, user_id)
        if user is None:
            raise NotFoundError("User")
        return user

    def _save(self, user: User) -> User:
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user

    def update_education(
        self, user_id: int, entries: List[schemas.EducationEntry]
    ) -> User:
        """Replace the whole education list."""
        user = self.get_user_by_id(user_id)
        user.education = [entry.model_dump(by_alias=True) for entry in entries]
        logger.info(f"User {user_id} education updated ({len(entries)} entries)")
        return self._save(user)

    def update_skills(self, user_id: int, entries: List[schemas.SkillEntry]) -> User:
        """Replace the whole skills list."""
        user = self.get_user_by_id(user_id)
        user.skills = [
            entry.model_dump(by_alias=True, exclude_none=True) for entry in entries
        ]
        logger.info(f"User {user_id} skills updated ({len(entries)} entries)")
        return self._save(user)

    def update_contact(self, user_id: int, payload: schemas.ContactUpdate) -> User:
        """
        Merge the supplied contactInfo keys into the stored object and/or
        replace the contacts list.
        """
        changes: Dict[str, Any] = {}
        if payload.contact_info is not None:
            info = payload.contact_info.model_dump(exclude_unset=True)
            if info:
                changes["contact_info"] = info
        if payload.contacts is not None:
            changes["contacts"] = [
                link.model_dump(mode="json") for link in payload.contacts
            ]
        if not changes:
            raise BadRequestError("No contact payload provided")

        user = self.get_user_by_id(user_id)
        if "contact_info" in changes:
            # New dict so the JSON column registers the change
            user.contact_info = {**(user.contact_info or {}), **changes["contact_info"]}
        if "contacts" in changes:
            user.contacts = changes["contacts"]
        logger.info(f"User {user_id} contact details updated")
        return self._save(user)

    def update_profile(self, user_id: int, changes: Dict[str, Any]) -> User:
        """Apply name/headline/profile_pic changes; other keys are ignored."""
        user = self.get_user_by_id(user_id)
        for field in ("name", "headline", "profile_pic"):
            if field in changes:
                setattr(user, field, changes[field])
        logger.info(f"User {user_id} profile updated: {sorted(changes)}")
        return self._save(user)
