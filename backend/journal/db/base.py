from __future__ import annotations

from typing import TYPE_CHECKING

from supabase import Client, ClientOptions, create_client

from journal.core.errors import ConfigurationError
from journal.utils.logging import get_logger

if TYPE_CHECKING:
    from journal.config import Settings

logger = get_logger(__name__)


def create_supabase_admin_client(settings: Settings) -> Client:
    """Return a Supabase client using the service role key.

    The enrichment job touches every user's rows, so it needs the elevated
    key rather than a request-scoped client bound to a user JWT.
    """
    logger.debug("Initializing Supabase admin client")
    if not settings.supabase_service_role_key:
        raise RuntimeError("supabase_service_role_key is required for admin client")
    return create_client(
        settings.supabase_url,
        settings.supabase_service_role_key,
        options=ClientOptions(auto_refresh_token=False, persist_session=False),
    )


def check_connection(client: Client) -> None:
    """Run a one-row query so bad URLs or keys fail at startup, not mid-pass."""
    try:
        client.table("User").select("id").limit(1).execute()
    except Exception as err:
        raise ConfigurationError(f"cannot reach Supabase: {err}") from err
