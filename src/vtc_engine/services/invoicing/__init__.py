"""Invoice line service exports."""

from .lines import build_invoice_lines, calculate_invoice_totals, calculate_transport_amount, parse_applied_rules

__all__ = ["build_invoice_lines", "calculate_invoice_totals", "calculate_transport_amount", "parse_applied_rules"]
