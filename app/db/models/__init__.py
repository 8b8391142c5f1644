from app.db.models.discount_code_usage import DiscountCodeUsage
from app.db.models.discount_codes import DiscountCode
from app.db.models.discount_eligibility_checks import DiscountEligibilityCheck
from app.db.models.profiles import Profile

__all__ = [
    "DiscountCode",
    "DiscountCodeUsage",
    "DiscountEligibilityCheck",
    "Profile",
]
