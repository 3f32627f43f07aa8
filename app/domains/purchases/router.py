from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.orm import Session

from app.domains.auth.router import get_current_user, get_optional_user
from app.domains.auth.schemas import AuthUser
from app.domains.purchases import schemas
from app.domains.purchases.service import PurchaseService
from app.shared.database.connection import get_db

router = APIRouter(prefix="/purchases", tags=["purchases"])


@router.post(
    "",
    response_model=schemas.PurchaseCreatedResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_purchase(
    payload: schemas.PurchaseCreate,
    buyer: Optional[AuthUser] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    """
    Buy an artwork

    No account is needed; a bearer token, when sent, records the buyer.

    **Possible errors:**
    - 400: Validation failed, or artwork already sold
    - 404: Artwork not found
    """
    purchase = PurchaseService(db).create_purchase(payload, buyer)
    return {"message": "Purchase completed successfully", "purchase": purchase}


@router.get("/history", response_model=List[schemas.PurchaseResponse])
def get_purchase_history(
    history_type: Optional[str] = Query(None, alias="type"),
    current_user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Purchases the caller made (``type=bought``), received (``type=sold``) or both"""
    return PurchaseService(db).get_purchase_history(current_user.id, history_type)


@router.get("/{purchase_id}", response_model=schemas.PurchaseResponse)
def get_purchase(
    purchase_id: int = Path(..., gt=0),
    current_user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return PurchaseService(db).get_purchase(purchase_id, current_user.id)
