# Cloudflare Gateway Adblock Updater
# Author: SeriousHoax
# GitHub: https://github.com/SeriousHoax
# License: MIT

from dataclasses import dataclass, field
from typing import Dict, List


@dataclass(frozen=True)
class ManagedList:
    """A Gateway DOMAIN list as returned by the lists endpoint."""

    id: str
    name: str
    description: str = ""
    items: List[str] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: Dict) -> "ManagedList":
        return cls(
            id=data['id'],
            name=data.get('name', ''),
            description=data.get('description') or '',
            items=[item['value'] for item in data.get('items') or []],
        )


@dataclass(frozen=True)
class GatewayRule:
    id: str
    name: str
    action: str
    enabled: bool
    traffic: str

    @classmethod
    def from_api(cls, data: Dict) -> "GatewayRule":
        return cls(
            id=data['id'],
            name=data.get('name', ''),
            action=data.get('action', ''),
            enabled=bool(data.get('enabled', False)),
            traffic=data.get('traffic') or '',
        )
