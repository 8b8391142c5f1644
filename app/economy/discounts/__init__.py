from app.economy.discounts.service import DiscountService

__all__ = ["DiscountService"]
