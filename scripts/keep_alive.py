"""
Remote project keep-alive.

Free Supabase projects pause after a week without traffic. Run this from a
scheduler (cron, CI) to issue one cheap read against the vehicles table.

Usage:
    python -m scripts.keep_alive

Exits 0 on success, 1 when the project is not configured or unreachable.
"""

import asyncio
import logging
import sys

from chargepal.app.core.config import settings
from chargepal.app.core.reliability import supabase_circuit_breaker
from chargepal.app.core.observability import configure_logging
from chargepal.app.services.remote_store import RemoteStoreError
from chargepal.app.services.supabase_store import SupabaseStore

logger = logging.getLogger("chargepal.keep_alive")


async def ping_project() -> bool:
    config = settings.sync_config()
    if not config.is_configured:
        logger.error("Supabase project URL or API key missing")
        return False

    async with SupabaseStore.from_config(config, breaker=supabase_circuit_breaker) as store:
        try:
            await store.ping()
        except RemoteStoreError as exc:
            logger.error("Keep-alive ping failed: %s", exc)
            return False

    logger.info("Keep-alive ping succeeded", extra={"project_url": config.project_url})
    return True


def main() -> int:
    configure_logging(settings.log_level)
    return 0 if asyncio.run(ping_project()) else 1


if __name__ == "__main__":
    sys.exit(main())
