import logging
import secrets
import string
import time
from typing import List, Optional, Sequence

from sqlalchemy import or_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import ArtworkAlreadySoldError, ForbiddenError, NotFoundError
from app.domains.artwork.models import Artwork, ArtworkStatus, utcnow
from app.domains.artwork.service import user_summaries
from app.domains.auth.schemas import AuthUser
from app.domains.purchases import schemas
from app.domains.purchases.models import (
    ANONYMOUS_BUYER_EMAIL,
    ANONYMOUS_BUYER_NAME,
    Purchase,
    PurchaseStatus,
)

logger = logging.getLogger(__name__)

BASE36 = string.digits + string.ascii_lowercase


def generate_transaction_id() -> str:
    """TXN_<epoch ms>_<9 base-36 chars>"""
    suffix = "".join(secrets.choice(BASE36) for _ in range(9))
    return f"TXN_{int(time.time() * 1000)}_{suffix}"


class PurchaseService:
    def __init__(self, db: Session):
        self.db = db

    def _serialize(
        self,
        purchases: Sequence[Purchase],
        artwork_fields: Sequence[str] = ("title", "image_url"),
    ) -> List[dict]:
        users = user_summaries(
            self.db,
            [p.buyer_id for p in purchases] + [p.seller_id for p in purchases],
        )
        artwork_ids = {p.artwork_id for p in purchases}
        artworks = {}
        if artwork_ids:
            rows = self.db.query(Artwork).filter(Artwork.id.in_(artwork_ids)).all()
            artworks = {a.id: a for a in rows}

        result = []
        for purchase in purchases:
            artwork = artworks.get(purchase.artwork_id)
            artwork_summary = None
            if artwork is not None:
                artwork_summary = {"id": artwork.id}
                for field in artwork_fields:
                    artwork_summary[field] = getattr(artwork, field)
            result.append(
                {
                    "id": purchase.id,
                    "buyer_id": purchase.buyer_id,
                    "buyer": users.get(purchase.buyer_id),
                    "buyer_name": purchase.buyer_name,
                    "buyer_email": purchase.buyer_email,
                    "seller_id": purchase.seller_id,
                    "seller": users.get(purchase.seller_id),
                    "artwork_id": purchase.artwork_id,
                    "artwork": artwork_summary,
                    "amount": purchase.amount,
                    "status": purchase.status,
                    "payment_method": purchase.payment_method,
                    "transaction_id": purchase.transaction_id,
                    "purchase_date": purchase.purchase_date,
                    "created_at": purchase.created_at,
                    "updated_at": purchase.updated_at,
                }
            )
        return result

    def create_purchase(
        self, payload: schemas.PurchaseCreate, buyer: Optional[AuthUser] = None
    ) -> dict:
        """
        Record the sale of an available artwork.

        The artwork flips to sold and the purchase row is inserted in one
        transaction. The status flip is conditional, so of two concurrent
        buyers only one gets a row updated; the other sees AlreadySold.
        """
        artwork = self.db.get(Artwork, payload.artwork_id)
        if artwork is None:
            raise NotFoundError("Artwork")
        if artwork.status == ArtworkStatus.SOLD:
            raise ArtworkAlreadySoldError()

        try:
            result = self.db.execute(
                update(Artwork)
                .where(Artwork.id == artwork.id, Artwork.status == ArtworkStatus.AVAILABLE)
                .values(status=ArtworkStatus.SOLD, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                self.db.rollback()
                logger.info(f"Artwork {artwork.id} was sold concurrently")
                raise ArtworkAlreadySoldError()

            purchase = Purchase(
                buyer_id=buyer.id if buyer else None,
                buyer_name=payload.buyer_name
                or (buyer.name if buyer else ANONYMOUS_BUYER_NAME),
                buyer_email=payload.buyer_email
                or (buyer.email if buyer else ANONYMOUS_BUYER_EMAIL),
                seller_id=artwork.artist_id,
                artwork_id=artwork.id,
                amount=artwork.price,
                status=PurchaseStatus.COMPLETED,
                transaction_id=generate_transaction_id(),
            )
            self.db.add(purchase)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(f"Purchase of artwork {payload.artwork_id} failed")
            raise

        self.db.refresh(purchase)
        logger.info(
            f"Purchase {purchase.id} ({purchase.transaction_id}): artwork {artwork.id} "
            f"sold for {purchase.amount}"
        )
        return self._serialize([purchase])[0]

    def get_purchase_history(
        self, user_id: int, history_type: Optional[str] = None
    ) -> List[dict]:
        """Purchases the user bought, sold, or both (any other type), newest first"""
        q = self.db.query(Purchase)
        if history_type == "bought":
            q = q.filter(Purchase.buyer_id == user_id)
        elif history_type == "sold":
            q = q.filter(Purchase.seller_id == user_id)
        else:
            q = q.filter(or_(Purchase.buyer_id == user_id, Purchase.seller_id == user_id))

        purchases = q.order_by(Purchase.purchase_date.desc(), Purchase.id.desc()).all()
        return self._serialize(purchases, artwork_fields=("title", "image_url", "price"))

    def get_purchase(self, purchase_id: int, user_id: int) -> dict:
        """Get a purchase visible to its buyer or seller"""
        purchase = self.db.get(Purchase, purchase_id)
        if purchase is None:
            raise NotFoundError("Purchase")
        if user_id not in (purchase.buyer_id, purchase.seller_id):
            raise ForbiddenError("Not authorized to view this purchase")
        return self._serialize(
            [purchase], artwork_fields=("title", "image_url", "price", "description")
        )[0]
