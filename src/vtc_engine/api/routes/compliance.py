"""RSE compliance endpoints."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, status
from fastapi.encoders import jsonable_encoder

from ...data.rse_rules_repository import load_rse_rules
from ...schemas.compliance import AlternativesRequest, ComplianceRequest
from ...services.compliance.alternatives import generate_alternatives
from ...services.compliance.models import RSERules
from ...services.compliance.staffing import select_best_staffing_plan
from ...services.compliance.validator import get_compliance_summary, validate_heavy_vehicle_compliance

router = APIRouter(prefix="/compliance", tags=["compliance"])


def _resolve_rules(payload: ComplianceRequest) -> Optional[RSERules]:
    if payload.rules is not None:
        return payload.rules.to_domain()
    if payload.regulatory_category != "HEAVY":
        return None
    return load_rse_rules(payload.license_category_id)


@router.post("/validate", status_code=status.HTTP_200_OK)
def validate(payload: ComplianceRequest) -> dict:
    """Validate a trip against the driving-time rules of its license category."""
    try:
        result = validate_heavy_vehicle_compliance(payload.to_input(), _resolve_rules(payload))
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except Exception as exc:
        logging.exception(f"Error validating compliance: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to validate compliance: {str(exc)}",
        ) from exc
    return {
        "result": jsonable_encoder(result),
        "summary": jsonable_encoder(get_compliance_summary(result)),
    }


@router.post("/alternatives", status_code=status.HTTP_200_OK)
def alternatives(payload: AlternativesRequest) -> dict:
    """Staffing alternatives for a non-compliant trip and the plan chosen by the policy."""
    try:
        rules = _resolve_rules(payload)
        result = validate_heavy_vehicle_compliance(payload.to_input(), rules)
        generated = generate_alternatives(result, payload.cost_parameters.to_domain(), rules)
        selection = select_best_staffing_plan(generated, payload.policy)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except Exception as exc:
        logging.exception(f"Error generating staffing alternatives: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to generate alternatives: {str(exc)}",
        ) from exc
    return {
        "alternatives": jsonable_encoder(generated),
        "selection": jsonable_encoder(selection),
    }
