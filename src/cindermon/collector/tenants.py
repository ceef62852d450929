"""Tenant directory: the id -> display name mapping visible to the configured user."""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional

from cindermon.config import CollectorConfig
from cindermon.errors import CollectorError, DirectoryError
from cindermon.metrics import Tenant

log = logging.getLogger(__name__)

TenantLister = Callable[[CollectorConfig], Dict[str, str]]


class TenantDirectory:

    def __init__(self, list_tenants: TenantLister):
        self._list_tenants = list_tenants
        self._tenants: Dict[str, str] = {}

    def resolve(self, config: CollectorConfig) -> Dict[str, str]:
        """List tenants and replace the current snapshot.

        On failure the previous snapshot is left untouched.
        """
        try:
            tenants = self._list_tenants(config)
        except DirectoryError:
            raise
        except CollectorError as e:
            raise DirectoryError(f"Cannot list tenants: {e}") from e

        self._tenants = dict(tenants)
        log.info("Tenant directory refreshed: %d tenants", len(self._tenants))
        return dict(self._tenants)

    def ensure(self, config: CollectorConfig) -> Dict[str, str]:
        """Resolve only if nothing is known yet."""
        if not self._tenants:
            return self.resolve(config)
        return dict(self._tenants)

    def name_for(self, tenant_id: str) -> Optional[str]:
        return self._tenants.get(tenant_id)

    def tenants(self) -> List[Tenant]:
        return sorted((Tenant(id=i, name=n) for i, n in self._tenants.items()), key=lambda t: t.name)

    def __len__(self) -> int:
        return len(self._tenants)
