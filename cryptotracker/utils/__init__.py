from .numbers import to_finite_float, to_positive_float, is_price, format_usd

__all__ = ["to_finite_float", "to_positive_float", "is_price", "format_usd"]
