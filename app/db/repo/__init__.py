from app.db.repo.discounts_repo import DiscountsRepo
from app.db.repo.profiles_repo import ProfilesRepo

__all__ = [
    "DiscountsRepo",
    "ProfilesRepo",
]
