"""Ledger entry lifetime renewal job."""

from __future__ import annotations

import logging

from survey_ledger.config import settings
from survey_ledger.dependencies import get_store
from survey_ledger.services.store import KeyedStore
from survey_ledger.utils.errors import EntryArchivedError

logger = logging.getLogger(__name__)


def renew_entries(store: KeyedStore) -> int:
    """Extend every live entry close to expiry; return how many were visited."""
    renewed = 0
    for key in store.keys():
        try:
            if store.extend_ttl(
                key,
                threshold=settings.ttl_threshold_seconds,
                extend_to=settings.ttl_extend_to_seconds,
            ):
                renewed += 1
        except EntryArchivedError:
            # Lapsed between listing and renewal.
            logger.warning("Ledger entry %s archived before renewal", key)
    return renewed


async def ttl_renewal() -> None:
    """Keep surveys, votes, tallies, rosters, and registries alive."""
    renewed = renew_entries(get_store())
    logger.info("ttl_renewal completed for %s entries", renewed)
