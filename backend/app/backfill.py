"""
Recompute stored normalization keys after NORM_POLICY changes.

Usage:
    python -m app.backfill                  # use NORM_POLICY from the environment
    python -m app.backfill --policy card    # override the policy
    python -m app.backfill --dry-run        # report only

Entries whose new key is already owned by an older entry are left as they
are and listed as conflicts; resolve them by hand (usually by deleting one
of the pair) and run the command again.
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from app.config import get_settings
from app.dependencies import build_entry_service, build_store
from app.logging_config import setup_logging
from app.services.entry_service import BackfillReport

logger = logging.getLogger("jotter.backfill")


async def run(policy: Optional[str], dry_run: bool) -> BackfillReport:
    settings = get_settings()
    if policy:
        settings = settings.model_copy(update={"norm_policy": policy})
    settings.validate_required()

    store = build_store(settings)
    service = build_entry_service(settings, store)
    await store.connect()
    try:
        return await service.backfill_norms(dry_run=dry_run)
    finally:
        await store.close()


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Recompute entry keys under the active normalization policy")
    parser.add_argument("--policy", choices=["fold", "card", "token"], default=None,
                        help="override NORM_POLICY")
    parser.add_argument("--dry-run", action="store_true", help="report without writing")
    args = parser.parse_args(argv)

    setup_logging(get_settings().log_level)
    report = asyncio.run(run(args.policy, args.dry_run))

    logger.info("%s %d entries to %s (%d already current)",
                "Would update" if args.dry_run else "Updated",
                report.updated, report.version, report.unchanged)
    for entry_id in report.conflicts:
        logger.warning("Conflict: entry %s shares its new key with an older entry", entry_id)
    return 1 if report.conflicts else 0


if __name__ == "__main__":
    sys.exit(main())
