"""Pick one staffing plan among the generated alternatives."""

from __future__ import annotations

from typing import Optional

from .models import AlternativeOption, AlternativesGenerationResult, StaffingSelectionResult

INTERNAL_PREFERENCE_ORDER = ("DOUBLE_CREW", "MULTI_DAY", "RELAY_DRIVER")


def _cheapest(candidates: list[AlternativeOption]) -> tuple[AlternativeOption, str]:
    # min() keeps the first of equal-cost candidates
    plan = min(candidates, key=lambda option: option.additional_cost.total)
    return plan, f"Selected {plan.title}: lowest cost option ({plan.additional_cost.total:g} EUR)"


def _fastest(candidates: list[AlternativeOption]) -> tuple[AlternativeOption, str]:
    plan = min(candidates, key=lambda option: option.adjusted_schedule.days_required)
    days = plan.adjusted_schedule.days_required
    return plan, f"Selected {plan.title}: fastest option ({days} day{'s' if days > 1 else ''})"


def _prefer_internal(candidates: list[AlternativeOption]) -> tuple[AlternativeOption, str]:
    plan = min(candidates, key=lambda option: INTERNAL_PREFERENCE_ORDER.index(option.type))
    return plan, f"Selected {plan.title}: preferred internal staffing option"


def select_best_staffing_plan(
    alternatives_result: AlternativesGenerationResult,
    policy: Optional[str] = "CHEAPEST",
) -> StaffingSelectionResult:
    """Choose a plan among feasible, compliant alternatives.

    Unknown policies behave like CHEAPEST. When no candidate qualifies the
    result is flagged as required with no plan so a dispatcher can step in.
    """
    effective_policy = policy if policy in ("CHEAPEST", "FASTEST", "PREFER_INTERNAL") else "CHEAPEST"
    alternatives = alternatives_result.alternatives
    violations = alternatives_result.original_violations

    if not alternatives:
        return StaffingSelectionResult(
            selected_plan=None,
            is_required=False,
            reason="No staffing plan required.",
            policy=effective_policy,
            all_alternatives=alternatives,
            original_violations=violations,
        )

    candidates = [option for option in alternatives if option.is_feasible and option.would_be_compliant]
    if not candidates:
        return StaffingSelectionResult(
            selected_plan=None,
            is_required=True,
            reason="No feasible compliant staffing plan found: manual intervention required.",
            policy=effective_policy,
            all_alternatives=alternatives,
            original_violations=violations,
        )

    match effective_policy:
        case "FASTEST":
            plan, reason = _fastest(candidates)
        case "PREFER_INTERNAL":
            plan, reason = _prefer_internal(candidates)
        case _:
            plan, reason = _cheapest(candidates)

    return StaffingSelectionResult(
        selected_plan=plan,
        is_required=True,
        reason=reason,
        policy=effective_policy,
        all_alternatives=alternatives,
        original_violations=violations,
    )
