# Cloudflare Gateway Adblock Updater
# Author: SeriousHoax
# GitHub: https://github.com/SeriousHoax
# License: MIT

"""Swap the generated blocklists behind the AdBlock rule.

The Gateway API has no multi-object transaction, so the swap is ordered to
keep the rule valid at every step:

    VERIFYING -> FETCHING -> DETACHING -> DELETING -> CREATING -> ATTACHING -> DONE

The rule is pointed at a placeholder expression before any list is deleted,
so it never references a list id that no longer exists. A failure in any
state halts the run; completed states are not rolled back and the next
successful run repairs whatever was left behind.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional

from adblock_sync.client import GatewayClient
from adblock_sync.config import Settings
from adblock_sync.lists import ListManager, PrefixOwnership
from adblock_sync.models import GatewayRule, ManagedList
from adblock_sync.rules import RuleUpdater
from adblock_sync.source import BlocklistSource, partition

logger = logging.getLogger(__name__)

RUN_STAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class SyncState(Enum):
    VERIFYING = "verifying"
    FETCHING = "fetching"
    DETACHING = "detaching"
    DELETING = "deleting"
    CREATING = "creating"
    ATTACHING = "attaching"
    DONE = "done"
    FAILED = "failed"


@dataclass
class SyncReport:
    state: SyncState = SyncState.VERIFYING
    failed_state: Optional[SyncState] = None
    error: Optional[BaseException] = None
    domains: int = 0
    chunks: int = 0
    deleted: int = 0
    step: str = ""
    created: List[ManagedList] = field(default_factory=list)
    rule: Optional[GatewayRule] = None

    @property
    def succeeded(self) -> bool:
        return self.state is SyncState.DONE

    @property
    def created_ids(self) -> List[str]:
        return [lst.id for lst in self.created]


class Reconciler:
    def __init__(self, settings: Settings, client: GatewayClient,
                 source: Optional[BlocklistSource] = None,
                 lists: Optional[ListManager] = None,
                 rules: Optional[RuleUpdater] = None,
                 clock: Callable[[], datetime] = datetime.now):
        self.settings = settings
        self.client = client
        self.source = source or BlocklistSource(
            settings.source_url_template,
            timeout=settings.request_timeout,
            allow_empty=settings.allow_empty_source,
        )
        self.ownership = PrefixOwnership(settings.list_prefix)
        self.lists = lists or ListManager(client, self.ownership, settings.max_concurrent_requests)
        self.rules = rules or RuleUpdater(client, settings.rule_name, settings.placeholder_traffic)
        self.clock = clock

    async def run(self) -> SyncReport:
        """Run the whole swap; failures are logged and recorded, never raised."""
        report = SyncReport()
        start_time = time.time()
        try:
            await self._run(report)
        except Exception as e:
            report.failed_state = report.state
            report.error = e
            report.state = SyncState.FAILED
            logger.error(f"🚫 Sync halted while {report.failed_state.value} ({report.step}): {e}", exc_info=True)
            return report

        logger.info(f"⏱️ Sync finished in {time.time() - start_time:.1f}s")
        return report

    async def _run(self, report: SyncReport) -> None:
        settings = self.settings

        report.state = SyncState.VERIFYING
        report.step = "checking settings"
        settings.require()
        report.step = "verifying token"
        await self.client.verify_token()

        report.state = SyncState.FETCHING
        report.step = "downloading source list"
        domains = await asyncio.to_thread(self.source.fetch, settings.year, settings.month)
        chunks = partition(domains, settings.chunk_size)
        report.domains = len(domains)
        report.chunks = len(chunks)
        logger.info(f"✓ Split {len(domains):,} domains into {len(chunks)} chunk(s) of up to {settings.chunk_size}")
        if len(chunks) > settings.max_lists_warning:
            logger.warning(f"⚠️ {len(chunks)} chunks is close to Cloudflare's list limit!")
        # read the lists to replace before touching the rule, so a failed read
        # leaves the rule as it was
        report.step = "listing owned lists"
        old_lists = await self.lists.list_owned_lists()

        report.state = SyncState.DETACHING
        report.step = "pointing rule at placeholder"
        report.rule = await self.rules.set_traffic(settings.rule_id, [])
        logger.info("🔌 Excluded adblock lists from gateway rule")

        report.state = SyncState.DELETING
        report.step = "deleting old lists"
        if old_lists:
            logger.info(f"Deleting {len(old_lists)} old lists...")
        deleted = await self.lists.delete_lists_batch(old_lists)
        report.deleted = len(deleted.completed)
        if not deleted.all_ok:
            logger.error(f"🚫 Deleted {report.deleted}/{len(old_lists)} old lists before failure "
                         f"({len(deleted.skipped)} not attempted)")
        deleted.raise_first_error()
        logger.info(f"🧹 Deleted {report.deleted} old lists")

        report.state = SyncState.CREATING
        report.step = "creating new lists"
        run_stamp = self.clock().strftime(RUN_STAMP_FORMAT)
        named_chunks = [
            (self.ownership.list_name(run_stamp, index), chunk)
            for index, chunk in enumerate(chunks)
        ]
        logger.info(f"Creating {len(named_chunks)} new lists...")
        created = await self.lists.create_lists_batch(named_chunks)
        report.created = created.results()
        if not created.all_ok:
            logger.error(f"🚫 Created {len(report.created)}/{len(named_chunks)} new lists before failure "
                         f"({len(created.skipped)} not attempted); rule stays detached")
        created.raise_first_error()
        logger.info(f"🧩 Created {len(report.created)} new lists")

        report.state = SyncState.ATTACHING
        report.step = "pointing rule at new lists"
        report.rule = await self.rules.set_traffic(settings.rule_id, report.created_ids)
        logger.info("✅ Updated gateway rule")

        report.state = SyncState.DONE
        report.step = ""
