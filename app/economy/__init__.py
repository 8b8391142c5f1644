from app.economy.discounts import DiscountService

__all__ = ["DiscountService"]
