import pytest

from vtc_engine.db.supabase import get_supabase_client


@pytest.fixture(autouse=True)
def clear_supabase_client_cache():
    get_supabase_client.cache_clear()
    yield
    get_supabase_client.cache_clear()
