# Import all models here so Base.metadata knows every table
from app.domains.artwork.models import Artwork
from app.domains.purchases.models import Purchase
from app.domains.users.models import User

__all__ = ["Artwork", "Purchase", "User"]
