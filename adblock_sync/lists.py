# Cloudflare Gateway Adblock Updater
# Author: SeriousHoax
# GitHub: https://github.com/SeriousHoax
# License: MIT

import logging
from typing import List, Optional, Sequence, Tuple

from adblock_sync.batch import BatchResult, run_batch
from adblock_sync.client import GatewayClient, check_response
from adblock_sync.config import LIST_PREFIX, MAX_CONCURRENT_REQUESTS
from adblock_sync.errors import RemoteFetchError, RemoteMutationError
from adblock_sync.models import ManagedList

logger = logging.getLogger(__name__)

LIST_DESCRIPTION = "Auto created adblock list"
PER_PAGE = 100


class PrefixOwnership:
    """Lists belong to this tool when their name starts with ``prefix``.

    No ids are persisted between runs; anything carrying the prefix is
    treated as ours.
    """

    def __init__(self, prefix: str = LIST_PREFIX):
        self.prefix = prefix

    def owns(self, lst: ManagedList) -> bool:
        return lst.name.startswith(self.prefix)

    def list_name(self, run_stamp: str, index: int) -> str:
        return f"{self.prefix}{run_stamp}_{index}"


class ListManager:
    def __init__(self, client: GatewayClient, ownership: Optional[PrefixOwnership] = None,
                 max_concurrency: int = MAX_CONCURRENT_REQUESTS):
        self.client = client
        self.ownership = ownership or PrefixOwnership()
        self.max_concurrency = max_concurrency

    async def get_all_lists(self, per_page: int = PER_PAGE) -> List[ManagedList]:
        """Fetch every list in the account, following pagination."""
        path = self.client.account_path("lists")
        all_items = []
        page = 1

        while True:
            response = await self.client.request('GET', path, params={'per_page': per_page, 'page': page})
            check_response(response, f"getting lists page {page}", RemoteFetchError)

            items = response.result or []
            all_items.extend(items)

            result_info = (response.data or {}).get('result_info') or {}
            total_count = result_info.get('total_count', 0)

            if page * result_info.get('per_page', per_page) >= total_count or not items:
                break
            page += 1

        logger.info(f"☄️ Fetched {len(all_items)} lists from {self.client.safe_path(path)} ({page} page(s))")
        return [ManagedList.from_api(item) for item in all_items]

    async def list_owned_lists(self) -> List[ManagedList]:
        owned = [lst for lst in await self.get_all_lists() if self.ownership.owns(lst)]
        logger.info(f"ℹ️ Found {len(owned)} existing lists named {self.ownership.prefix}*")
        return owned

    async def delete_list(self, lst: ManagedList) -> ManagedList:
        path = self.client.account_path(f"lists/{lst.id}")
        response = await self.client.request('DELETE', path)
        check_response(response, f"deleting list {lst.name}", RemoteMutationError)
        logger.info(f"  🧹 Deleted list: {lst.name}")
        return lst

    async def delete_lists_batch(self, lists: Sequence[ManagedList]) -> BatchResult:
        calls = [lambda lst=lst: self.delete_list(lst) for lst in lists]
        return await run_batch(calls, self.max_concurrency)

    async def delete_lists(self, lists: Sequence[ManagedList]) -> int:
        """Delete all ``lists`` in parallel; the first failure is raised."""
        batch = await self.delete_lists_batch(lists)
        batch.raise_first_error()
        return len(batch.completed)

    async def create_list(self, name: str, entries: Sequence[str],
                          description: str = LIST_DESCRIPTION) -> ManagedList:
        data_payload = {
            "name": name,
            "description": description,
            "type": "DOMAIN",
            "items": [{"value": domain} for domain in entries]
        }
        response = await self.client.request('POST', self.client.account_path("lists"), data_payload)
        check_response(response, f"creating list {name}", RemoteMutationError)

        result = response.result or {}
        if 'id' not in result:
            raise RemoteMutationError(f"creating list {name}", response.status,
                                      response.reason, "response carried no list id")
        created = ManagedList(
            id=result['id'],
            name=result.get('name', name),
            description=result.get('description') or description,
            items=list(entries),
        )
        logger.info(f"  🛠️ Created list: {name} ({len(entries)} domains)")
        return created

    async def create_lists_batch(self, named_chunks: Sequence[Tuple[str, Sequence[str]]]) -> BatchResult:
        """Create one list per ``(name, entries)``; outcomes keep chunk order."""
        total = len(named_chunks)
        calls = [
            lambda name=name, chunk=chunk, num=num: self.create_list(
                name, chunk, f"{LIST_DESCRIPTION} {num}/{total}")
            for num, (name, chunk) in enumerate(named_chunks, 1)
        ]
        return await run_batch(calls, self.max_concurrency)
