# Cloudflare Gateway Adblock Updater
# Author: SeriousHoax
# GitHub: https://github.com/SeriousHoax
# License: MIT

import logging
from typing import List, Optional, Sequence

from adblock_sync.client import GatewayClient, check_response
from adblock_sync.config import PLACEHOLDER_TRAFFIC, RULE_NAME
from adblock_sync.errors import ConfigError, RemoteFetchError, RemoteMutationError
from adblock_sync.models import GatewayRule

logger = logging.getLogger(__name__)

MAX_EXPRESSION_LENGTH = 4000


def build_traffic(list_ids: Sequence[str], placeholder: str = PLACEHOLDER_TRAFFIC) -> str:
    """OR of list-membership predicates, or ``placeholder`` when there are no lists."""
    if not list_ids:
        return placeholder
    return " or ".join([f"any(dns.domains[*] in ${lid})" for lid in list_ids])


class RuleUpdater:
    """Owns the traffic expression of one pre-existing Gateway rule."""

    def __init__(self, client: GatewayClient, rule_name: str = RULE_NAME,
                 placeholder_traffic: str = PLACEHOLDER_TRAFFIC):
        self.client = client
        self.rule_name = rule_name
        self.placeholder_traffic = placeholder_traffic

    def build_traffic(self, list_ids: Sequence[str]) -> str:
        return build_traffic(list_ids, self.placeholder_traffic)

    async def set_traffic(self, rule_id: Optional[str], list_ids: Sequence[str]) -> GatewayRule:
        """Replace the whole rule so it blocks members of ``list_ids``.

        This is a PUT, not a PATCH: name, action and enabled are reset too.
        """
        if not rule_id:
            raise ConfigError("RULE_ID is not set")

        expression = self.build_traffic(list_ids)
        if len(expression) > MAX_EXPRESSION_LENGTH:
            logger.warning(f"⚠️ Expression length ({len(expression)}) may exceed Cloudflare limits!")

        rule_payload = {
            "action": "block",
            "name": self.rule_name,
            "enabled": True,
            "traffic": expression
        }
        path = self.client.account_path(f"rules/{rule_id}")
        response = await self.client.request('PUT', path, rule_payload)
        check_response(response, f"updating rule {self.rule_name}", RemoteMutationError)

        result = response.result or {}
        logger.info(f"🏆 Updated rule '{self.rule_name}' ({len(list_ids)} lists)")
        return GatewayRule(
            id=result.get('id', rule_id),
            name=result.get('name', self.rule_name),
            action=result.get('action', 'block'),
            enabled=bool(result.get('enabled', True)),
            traffic=result.get('traffic', expression),
        )

    async def get_rule(self, rule_id: Optional[str]) -> GatewayRule:
        if not rule_id:
            raise ConfigError("RULE_ID is not set")
        response = await self.client.request('GET', self.client.account_path(f"rules/{rule_id}"))
        check_response(response, f"getting rule {rule_id}", RemoteFetchError)
        return GatewayRule.from_api(response.result)

    async def list_rules(self) -> List[GatewayRule]:
        response = await self.client.request('GET', self.client.account_path("rules"))
        check_response(response, "getting gateway rules", RemoteFetchError)
        return [GatewayRule.from_api(item) for item in response.result or []]
