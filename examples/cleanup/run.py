"""Remove orphaned role assignments below every scope the caller administers.

The caller's eligible ``Owner`` / ``Role Based Access Control Administrator``
roles are activated first. Every scope where the caller holds one of them
is then cleaned together with its eligible child resources: standing
assignments and eligibilities whose principal no longer exists are deleted.

Usage::

    python -m examples.cleanup.run          # confirm each deletion
    python -m examples.cleanup.run --yes    # delete without asking
"""

from __future__ import annotations

import asyncio
import logging
import sys

from azpim import OrphanReconciler, PimClient, configure_logging

logger = logging.getLogger(__name__)


async def cleanup(client: PimClient, yes: bool = False) -> int:
    """Elevate, then reconcile each covered scope and its child resources.

    Returns:
        Total number of deleted assignments and eligibilities.
    """
    reconciler = OrphanReconciler(client, yes=yes)
    scopes = await reconciler.ensure_elevated()

    total = 0
    for scope in sorted(scopes):
        logger.info("cleaning_scope", extra={"scope": str(scope)})
        assignments, eligibilities = await reconciler.reconcile(scope, nested=True)
        total += len(assignments) + len(eligibilities)
    logger.info("cleanup_finished", extra={"deleted": total})
    return total


async def _main(yes: bool) -> None:
    async with PimClient() as client:
        await cleanup(client, yes=yes)


if __name__ == "__main__":
    configure_logging()
    asyncio.run(_main("--yes" in sys.argv[1:]))
