"""Supabase client singletons: auth (anon key) and ledger (service key)."""

from functools import lru_cache

import httpx
from supabase.lib.client_options import SyncClientOptions

from survey_ledger.config import settings
from supabase import Client, create_client


def _http_client() -> httpx.Client:
    max_connections = max(10, settings.supabase_http_max_connections)
    keepalive = max(5, min(max_connections, settings.supabase_http_max_keepalive_connections))
    return httpx.Client(
        timeout=httpx.Timeout(max(1, settings.supabase_postgrest_timeout_seconds)),
        limits=httpx.Limits(
            max_connections=max_connections,
            max_keepalive_connections=keepalive,
        ),
    )


def _client_for(key: str) -> Client:
    timeout_seconds = max(1, settings.supabase_postgrest_timeout_seconds)
    options = SyncClientOptions(
        auto_refresh_token=False,
        persist_session=False,
        postgrest_client_timeout=timeout_seconds,
        httpx_client=_http_client(),
    )
    return create_client(settings.supabase_url, key, options=options)


@lru_cache(maxsize=1)
def get_auth_client() -> Client:
    """Return the anon-key client used to validate caller tokens."""
    return _client_for(settings.supabase_anon_key)


@lru_cache(maxsize=1)
def get_ledger_client() -> Client:
    """Return the service-role client that owns ``ledger_state`` writes.

    Bypasses RLS; never hand it to request-scoped code other than the store.
    """
    return _client_for(settings.supabase_service_key)
