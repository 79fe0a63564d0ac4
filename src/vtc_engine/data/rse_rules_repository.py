"""Data access for organization RSE rules stored in Supabase."""

from __future__ import annotations

import logging
from typing import Any, Optional

from ..config import settings
from ..db.supabase import get_supabase_client
from ..services.compliance.models import RSERules


def _row_to_rules(row: dict[str, Any]) -> RSERules:
    capped = row.get("capped_average_speed_kmh")
    return RSERules(
        license_category_id=str(row["license_category_id"]),
        license_category_code=str(row.get("license_category_code") or row["license_category_id"]),
        max_daily_driving_hours=float(row["max_daily_driving_hours"]),
        max_daily_amplitude_hours=float(row["max_daily_amplitude_hours"]),
        break_minutes_per_driving_block=float(row["break_minutes_per_driving_block"]),
        driving_block_hours_for_break=float(row["driving_block_hours_for_break"]),
        capped_average_speed_kmh=float(capped) if capped is not None else None,
    )


def load_rse_rules(license_category_id: Optional[str]) -> RSERules | None:
    """Load the RSE rules of a license category.

    Returns None when the database is not configured, no row exists, the row is
    invalid or the query fails; callers then use the default heavy-vehicle rules.
    """
    if not license_category_id:
        return None

    supabase = get_supabase_client()
    if not supabase:
        return None

    try:
        response = (
            supabase.table(settings.rse_rules_table)
            .select("*")
            .eq("license_category_id", license_category_id)
            .limit(1)
            .execute()
        )
    except Exception as e:
        logging.warning(f"Failed to load RSE rules for license category {license_category_id}: {e}")
        return None

    if not response.data:
        return None

    try:
        return _row_to_rules(response.data[0])
    except (KeyError, ValueError, TypeError) as e:
        logging.warning(f"Skipping invalid RSE rules row for license category {license_category_id}: {e}")
        return None
