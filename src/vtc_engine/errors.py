"""Exceptions raised by the pricing and compliance core."""


class InvalidInputError(ValueError):
    """Raised when numeric or encoded input cannot be priced (negative distance, bad polyline, ...)."""
