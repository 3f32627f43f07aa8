import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import Settings
from app.core.exceptions import (
    EmailAlreadyRegisteredError,
    InvalidCredentialsError,
    UnauthenticatedError,
)
from app.domains.auth import schemas
from app.domains.users.models import User

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
# bcrypt only looks at the first 72 bytes of its input
BCRYPT_MAX_BYTES = 72


class AuthService:
    def __init__(self, db: Session, settings: Settings):
        self.db = db
        self.settings = settings

    # =========================================================================
    # Passwords
    # =========================================================================

    def hash_password(self, password: str) -> str:
        salt = bcrypt.gensalt(rounds=self.settings.bcrypt_rounds)
        return bcrypt.hashpw(password.encode("utf-8")[:BCRYPT_MAX_BYTES], salt).decode(
            "utf-8"
        )

    def verify_password(self, password: str, hashed: str) -> bool:
        try:
            return bcrypt.checkpw(
                password.encode("utf-8")[:BCRYPT_MAX_BYTES], hashed.encode("utf-8")
            )
        except ValueError:
            # Stored value is not a bcrypt hash
            return False

    # =========================================================================
    # Tokens
    # =========================================================================

    def create_access_token(
        self, data: dict, expires_delta: Optional[timedelta] = None
    ) -> str:
        """
        Create JWT access token
        """
        to_encode = data.copy()
        if expires_delta is None:
            expires_delta = timedelta(minutes=self.settings.access_token_expire_minutes)
        to_encode.update({"exp": datetime.now(timezone.utc) + expires_delta})
        return jwt.encode(to_encode, self.settings.secret_key, algorithm=ALGORITHM)

    def verify_token(self, token: str) -> schemas.TokenData:
        """
        Verify JWT token and return token data
        """
        try:
            payload = jwt.decode(token, self.settings.secret_key, algorithms=[ALGORITHM])
        except ExpiredSignatureError:
            raise UnauthenticatedError("Token has expired")
        except JWTError:
            raise UnauthenticatedError("Invalid token")

        subject = payload.get("sub")
        try:
            user_id = int(subject)
        except (TypeError, ValueError):
            raise UnauthenticatedError("Invalid token")
        return schemas.TokenData(user_id=user_id)

    # =========================================================================
    # Accounts
    # =========================================================================

    def register(self, payload: schemas.RegisterRequest) -> User:
        """
        Create a user account. The email is checked up front and again by the
        unique index at commit.
        """
        existing = self.db.query(User).filter(User.email == payload.email).first()
        if existing:
            raise EmailAlreadyRegisteredError()

        user = User(
            name=payload.name,
            email=payload.email,
            password=self.hash_password(payload.password),
            role=payload.role,
        )
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise EmailAlreadyRegisteredError()
        self.db.refresh(user)

        logger.info(f"Registered user {user.id} ({user.role.value})")
        return user

    def authenticate(self, payload: schemas.LoginRequest) -> schemas.LoginResponse:
        """
        Check credentials and issue an access token.

        Unknown email and wrong password fail identically.
        """
        user = self.db.query(User).filter(User.email == payload.email).first()
        if not user or not self.verify_password(payload.password, user.password):
            logger.warning(f"Failed login attempt for {payload.email}")
            raise InvalidCredentialsError()

        token = self.create_access_token(data={"sub": str(user.id)})
        logger.info(f"User {user.id} logged in")
        return schemas.LoginResponse(
            token=token, user=schemas.PublicUser.model_validate(user)
        )

    def get_current_user(self, token: str) -> User:
        """
        Get current authenticated user
        """
        token_data = self.verify_token(token)
        user = self.db.get(User, token_data.user_id)
        if user is None:
            raise UnauthenticatedError("User no longer exists")
        return user
