"""Route group exports."""

from . import compliance, health, invoices, pricing

__all__ = ["pricing", "compliance", "invoices", "health"]
