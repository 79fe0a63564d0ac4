"""Invoice line request/response schemas."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class InvoiceLinesRequest(BaseModel):
    final_price: float = Field(..., ge=0, description="Quote final price, fees included, promotions deducted.")
    pickup_address: str
    dropoff_address: str
    applied_rules: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Quote applied rules holding optional_fees, promotions and added_fees.",
    )


class InvoiceLineModel(BaseModel):
    line_type: str
    description: str
    quantity: float
    unit_price_excl_vat: float
    vat_rate: float
    total_excl_vat: float
    total_vat: float
    sort_order: int


class InvoiceTotalsModel(BaseModel):
    total_excl_vat: float
    total_vat: float
    total_incl_vat: float


class InvoiceLinesResponse(BaseModel):
    transport_amount: float
    lines: List[InvoiceLineModel]
    totals: InvoiceTotalsModel
