"""Cache-first fuel price lookup with a static default fallback."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Literal, Optional

from ...config import settings
from ...db.supabase import get_supabase_client
from ..pricing.cost_model import DEFAULT_FUEL_PRICE_PER_LITRE

logger = logging.getLogger(__name__)

FuelPriceSource = Literal["CACHE", "DEFAULT"]


@dataclass(frozen=True, slots=True)
class FuelPriceResult:
    price_per_litre: float
    source: FuelPriceSource
    fetched_at: Optional[datetime]
    is_stale: bool
    fuel_type: str
    country_code: str
    currency: str = "EUR"


def _parse_timestamp(value: object) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    else:
        # Supabase returns ISO timestamps, sometimes with a trailing Z
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class FuelPriceService:
    """Reads the most recent cached price for a country and fuel type."""

    def __init__(
        self,
        staleness_hours: float | None = None,
        default_price: float = DEFAULT_FUEL_PRICE_PER_LITRE,
        table: str | None = None,
    ) -> None:
        self.staleness_hours = staleness_hours if staleness_hours is not None else settings.fuel_price_staleness_hours
        self.default_price = default_price
        self.table = table or settings.fuel_price_table

    def _default(self, country_code: str, fuel_type: str) -> FuelPriceResult:
        return FuelPriceResult(
            price_per_litre=self.default_price,
            source="DEFAULT",
            fetched_at=None,
            is_stale=False,
            fuel_type=fuel_type,
            country_code=country_code,
        )

    def is_stale(self, fetched_at: datetime, now: datetime | None = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return now - fetched_at > timedelta(hours=self.staleness_hours)

    def get_fuel_price(
        self,
        country_code: str | None = None,
        fuel_type: str | None = None,
    ) -> FuelPriceResult:
        """Never raises: a miss, an unconfigured database or a query error yields the default price."""
        country_code = country_code or settings.default_fuel_country_code
        fuel_type = fuel_type or settings.default_fuel_type

        supabase = get_supabase_client()
        if not supabase:
            return self._default(country_code, fuel_type)

        try:
            response = (
                supabase.table(self.table)
                .select("*")
                .eq("country_code", country_code)
                .eq("fuel_type", fuel_type)
                .order("fetched_at", desc=True)
                .limit(1)
                .execute()
            )
            rows = response.data or []
            if not rows:
                logger.warning(f"No cached fuel price for {country_code}/{fuel_type}, using default")
                return self._default(country_code, fuel_type)

            row = rows[0]
            fetched_at = _parse_timestamp(row["fetched_at"])
            price = float(row["price_per_litre"])
        except Exception as e:
            logger.error(f"Fuel price lookup failed for {country_code}/{fuel_type}: {e}")
            return self._default(country_code, fuel_type)

        stale = self.is_stale(fetched_at)
        if stale:
            logger.warning(
                f"Cached fuel price for {country_code}/{fuel_type} is stale "
                f"(fetched {fetched_at.isoformat()}, limit {self.staleness_hours}h)"
            )

        return FuelPriceResult(
            price_per_litre=price,
            source="CACHE",
            fetched_at=fetched_at,
            is_stale=stale,
            fuel_type=fuel_type,
            country_code=country_code,
        )


def get_fuel_price(country_code: str | None = None, fuel_type: str | None = None) -> FuelPriceResult:
    return FuelPriceService().get_fuel_price(country_code, fuel_type)
