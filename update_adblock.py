# Cloudflare Gateway Adblock Updater
# Author: SeriousHoax
# GitHub: https://github.com/SeriousHoax
# License: MIT

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from adblock_sync.client import GatewayClient
from adblock_sync.config import Settings
from adblock_sync.errors import SyncError
from adblock_sync.reconciler import Reconciler, SyncReport
from adblock_sync.rules import RuleUpdater

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level, logging.INFO),
                        format='%(asctime)s - %(levelname)s - %(message)s')


async def sync(settings: Settings) -> SyncReport:
    async with GatewayClient(settings.api_token, settings.account_id,
                             settings.api_base_url, settings.request_timeout) as client:
        return await Reconciler(settings, client).run()


def _log_rule(rule) -> None:
    state = "enabled" if rule.enabled else "disabled"
    logger.info(f"📋 {rule.id}  {rule.name!r}  action={rule.action}  ({state})")
    logger.info(f"     traffic: {rule.traffic}")


async def log_rules(client: GatewayClient, rule_id: Optional[str] = None) -> None:
    """Log the configured RULE_ID first, then every Gateway rule in the account."""
    updater = RuleUpdater(client)
    if rule_id:
        logger.info("🎯 Configured RULE_ID:")
        _log_rule(await updater.get_rule(rule_id))
    else:
        logger.info("❓ RULE_ID is not set; pick one of the rules below")
    for rule in await updater.list_rules():
        _log_rule(rule)


async def show_rules(settings: Settings) -> None:
    settings.require("api_token", "account_id")
    async with GatewayClient(settings.api_token, settings.account_id,
                             settings.api_base_url, settings.request_timeout) as client:
        await client.verify_token()
        await log_rules(client, settings.rule_id)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Sync the monthly 280blocker domain list into a Cloudflare Gateway block rule.")
    parser.add_argument("--show-rules", action="store_true",
                        help="list the account's gateway rules and exit")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="enable debug logging")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    try:
        settings = Settings.from_env()
    except SyncError as e:
        configure_logging()
        logger.error(f"🚫 {e}")
        return 1
    configure_logging("DEBUG" if args.verbose else settings.log_level)

    if args.show_rules:
        try:
            asyncio.run(show_rules(settings))
        except Exception as e:
            logger.error(f"🚫 Failed to list gateway rules: {e}", exc_info=True)
            return 1
        return 0

    logger.info("🎬 Starting Cloudflare Gateway Adblock Update...")
    logger.info(f"📅 Source month: {settings.year}-{settings.month}")
    logger.info(f"🏎️ Max concurrent requests: {settings.max_concurrent_requests}")

    try:
        report = asyncio.run(sync(settings))
    except Exception as e:
        logger.error(f"🚫 Sync failed: {e}", exc_info=True)
        return 1

    logger.info(f"{'='*60}")
    logger.info("SUMMARY")
    logger.info(f"{'='*60}")
    logger.info(f"🌐 Total domains: {report.domains:,}")
    logger.info(f"🗑️ Lists deleted: {report.deleted}")
    logger.info(f"🧩 Lists created: {len(report.created)}/{report.chunks}")

    if not report.succeeded:
        logger.warning(f"⚠️ Sync stopped in state '{report.failed_state.value}': {report.error}")
        return 1
    logger.info("✅ Gateway rule updated successfully!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
