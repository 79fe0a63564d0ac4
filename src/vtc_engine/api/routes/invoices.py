"""Invoice line endpoints."""

from __future__ import annotations

import logging
from dataclasses import asdict

from fastapi import APIRouter, HTTPException, status

from ...schemas.invoices import InvoiceLineModel, InvoiceLinesRequest, InvoiceLinesResponse, InvoiceTotalsModel
from ...services.invoicing.lines import (
    build_invoice_lines,
    calculate_invoice_totals,
    calculate_transport_amount,
    parse_applied_rules,
)

router = APIRouter(prefix="/invoices", tags=["invoices"])


@router.post("/lines", response_model=InvoiceLinesResponse, status_code=status.HTTP_200_OK)
def invoice_lines(payload: InvoiceLinesRequest) -> InvoiceLinesResponse:
    """Build VAT-split invoice lines from a quote's final price and applied rules."""
    try:
        parsed = parse_applied_rules(payload.applied_rules)
        transport_amount = calculate_transport_amount(payload.final_price, parsed)
        lines = build_invoice_lines(transport_amount, payload.pickup_address, payload.dropoff_address, parsed)
        totals = calculate_invoice_totals(lines)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except Exception as exc:
        logging.exception(f"Error building invoice lines: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to build invoice lines: {str(exc)}",
        ) from exc

    return InvoiceLinesResponse(
        transport_amount=transport_amount,
        lines=[InvoiceLineModel(**asdict(line)) for line in lines],
        totals=InvoiceTotalsModel(**asdict(totals)),
    )
