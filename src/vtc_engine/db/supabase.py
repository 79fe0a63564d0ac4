"""Supabase client for the pricing backend."""

import logging
from functools import lru_cache
from supabase import create_client, Client
from ..config import settings


@lru_cache()
def get_supabase_client() -> Client | None:
    """Get cached Supabase client instance.

    Returns:
        Supabase Client instance if configured, None otherwise.
        Note: This does not test the connection - actual queries may fail with network errors.
    """
    if not settings.supabase_url or not settings.supabase_key:
        logging.warning("Supabase credentials not configured (missing URL or key)")
        return None

    try:
        client = create_client(settings.supabase_url, settings.supabase_key)
        return client
    except Exception as e:
        logging.error(f"Failed to create Supabase client: {e}")
        return None


# Example usage patterns:
#
# from .db.supabase import get_supabase_client
#
# supabase = get_supabase_client()
#
# # Most recent fuel price for a country / fuel type
# result = supabase.table('fuel_price_cache') \
#     .select('*') \
#     .eq('country_code', 'FR') \
#     .eq('fuel_type', 'DIESEL') \
#     .order('fetched_at', desc=True) \
#     .limit(1) \
#     .execute()
#
# # RSE rules for a license category
# result = supabase.table('organization_license_rules') \
#     .select('*') \
#     .eq('license_category_id', 'lic-d') \
#     .limit(1) \
#     .execute()
