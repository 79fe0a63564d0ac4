"""Invoice lines with French VAT rates for transport and ancillary services.

A quote stores its optional fees and promotions inside its applied rules. This
module extracts them, rebuilds the transport-only amount and produces the
invoice lines: one transport line at the transport rate, one line per optional
fee at the fee's own rate, and one negative line per promotion at the
transport rate.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, List, Literal, Mapping, Optional

from ..numeric import round_currency

TRANSPORT_VAT_RATE = 10
DEFAULT_ANCILLARY_VAT_RATE = 20

InvoiceLineType = Literal["SERVICE", "OPTIONAL_FEE", "PROMOTION_ADJUSTMENT", "OTHER"]
DiscountType = Literal["FIXED", "PERCENTAGE"]


@dataclass(frozen=True, slots=True)
class AppliedOptionalFee:
    id: str
    name: str
    amount: float
    vat_rate: float = DEFAULT_ANCILLARY_VAT_RATE
    is_taxable: bool = True
    description: Optional[str] = None


@dataclass(frozen=True, slots=True)
class AppliedPromotion:
    id: str
    code: str
    discount_amount: float
    discount_type: DiscountType = "FIXED"
    description: Optional[str] = None


@dataclass(slots=True)
class ParsedAppliedRules:
    optional_fees: List[AppliedOptionalFee] = field(default_factory=list)
    promotions: List[AppliedPromotion] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class InvoiceLine:
    line_type: InvoiceLineType
    description: str
    quantity: float
    unit_price_excl_vat: float
    vat_rate: float
    total_excl_vat: float
    total_vat: float
    sort_order: int


@dataclass(frozen=True, slots=True)
class InvoiceTotals:
    total_excl_vat: float
    total_vat: float
    total_incl_vat: float


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_valid_optional_fee(fee: Any) -> bool:
    return isinstance(fee, Mapping) and _is_number(fee.get("amount")) and fee["amount"] > 0


def _is_valid_promotion(promo: Any) -> bool:
    return isinstance(promo, Mapping) and _is_number(promo.get("discount_amount")) and promo["discount_amount"] != 0


def _to_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _discount_type(value: Any) -> DiscountType:
    return "PERCENTAGE" if value == "PERCENTAGE" else "FIXED"


def _optional_fee(fee: Mapping[str, Any], default_name: str, is_taxable: bool) -> AppliedOptionalFee:
    vat_rate = fee.get("vat_rate")
    return AppliedOptionalFee(
        id=str(fee.get("id") or ""),
        name=str(fee.get("name") or default_name),
        amount=_to_float(fee.get("amount")),
        vat_rate=_to_float(vat_rate) if vat_rate is not None else DEFAULT_ANCILLARY_VAT_RATE,
        is_taxable=is_taxable,
        description=str(fee["description"]) if fee.get("description") else None,
    )


def _promotion(promo: Mapping[str, Any], code: Any, amount: Any) -> AppliedPromotion:
    return AppliedPromotion(
        id=str(promo.get("id") or ""),
        code=str(code or "PROMO"),
        discount_amount=abs(_to_float(amount)),
        discount_type=_discount_type(promo.get("discount_type")),
        description=str(promo["description"]) if promo.get("description") else None,
    )


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else []


def parse_applied_rules(applied_rules: Any) -> ParsedAppliedRules:
    """Extract optional fees and promotions from a quote's applied rules.

    Tolerates ``None`` and malformed payloads; invalid entries are skipped.
    """
    result = ParsedAppliedRules()
    if not isinstance(applied_rules, Mapping):
        return result

    fees = applied_rules.get("optional_fees")
    if not isinstance(fees, list):
        fees = _as_list(applied_rules.get("selected_optional_fees"))
    for fee in fees:
        if _is_valid_optional_fee(fee):
            result.optional_fees.append(_optional_fee(fee, "Optional Fee", fee.get("is_taxable") is not False))

    for promo in _as_list(applied_rules.get("promotions")):
        if _is_valid_promotion(promo):
            result.promotions.append(_promotion(promo, promo.get("code"), promo.get("discount_amount")))

    # single promotion, older quotes
    legacy = applied_rules.get("promotion")
    if _is_valid_promotion(legacy):
        result.promotions.append(_promotion(legacy, legacy.get("code"), legacy.get("discount_amount")))

    # fees and promotions added by hand on the quote
    for added in _as_list(applied_rules.get("added_fees")):
        if not isinstance(added, Mapping):
            continue
        match added.get("type"):
            case "fee":
                result.optional_fees.append(_optional_fee(added, "Custom Fee", True))
            case "promotion":
                result.promotions.append(_promotion(added, added.get("promo_code"), added.get("amount")))

    return result


def calculate_vat(amount_excl_vat: float, vat_rate: float) -> float:
    return round_currency(amount_excl_vat * vat_rate / 100)


def build_invoice_lines(
    transport_amount: float,
    pickup_address: str,
    dropoff_address: str,
    parsed_rules: ParsedAppliedRules,
) -> list[InvoiceLine]:
    lines: list[InvoiceLine] = []

    transport_excl_vat = round_currency(transport_amount)
    lines.append(
        InvoiceLine(
            line_type="SERVICE",
            description=f"Transport: {pickup_address} → {dropoff_address}",
            quantity=1,
            unit_price_excl_vat=transport_excl_vat,
            vat_rate=TRANSPORT_VAT_RATE,
            total_excl_vat=transport_excl_vat,
            total_vat=calculate_vat(transport_excl_vat, TRANSPORT_VAT_RATE),
            sort_order=len(lines),
        )
    )

    for fee in parsed_rules.optional_fees:
        fee_excl_vat = round_currency(fee.amount)
        vat_rate = fee.vat_rate if fee.is_taxable else 0
        lines.append(
            InvoiceLine(
                line_type="OPTIONAL_FEE",
                description=fee.name,
                quantity=1,
                unit_price_excl_vat=fee_excl_vat,
                vat_rate=vat_rate,
                total_excl_vat=fee_excl_vat,
                total_vat=calculate_vat(fee_excl_vat, vat_rate),
                sort_order=len(lines),
            )
        )

    # promotions discount the transport, so they carry the transport rate
    for promo in parsed_rules.promotions:
        discount_excl_vat = round_currency(-promo.discount_amount)
        lines.append(
            InvoiceLine(
                line_type="PROMOTION_ADJUSTMENT",
                description=f"Promotion: {promo.code}",
                quantity=1,
                unit_price_excl_vat=discount_excl_vat,
                vat_rate=TRANSPORT_VAT_RATE,
                total_excl_vat=discount_excl_vat,
                total_vat=calculate_vat(discount_excl_vat, TRANSPORT_VAT_RATE),
                sort_order=len(lines),
            )
        )

    return lines


def calculate_invoice_totals(lines: Iterable[InvoiceLine]) -> InvoiceTotals:
    total_excl_vat = 0.0
    total_vat = 0.0
    for line in lines:
        total_excl_vat += line.total_excl_vat
        total_vat += line.total_vat

    total_excl_vat = round_currency(total_excl_vat)
    total_vat = round_currency(total_vat)
    return InvoiceTotals(
        total_excl_vat=total_excl_vat,
        total_vat=total_vat,
        total_incl_vat=round_currency(total_excl_vat + total_vat),
    )


def calculate_transport_amount(final_price: float, parsed_rules: ParsedAppliedRules) -> float:
    """Transport-only share of a final price: fees come off, promotion discounts are added back."""
    amount = final_price
    for fee in parsed_rules.optional_fees:
        amount -= fee.amount
    for promo in parsed_rules.promotions:
        amount += promo.discount_amount
    return round_currency(amount)
