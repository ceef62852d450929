"""
Cinder data sources: volumes, snapshots and absolute limits.

A VolumeService turns one authenticated session into plain per-tenant
numbers. Volumes and snapshots come from admin-scoped listings across
all tenants; limits are always those of the session's own tenant.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import fields
from typing import Dict, Iterator, List

import httpx

from cindermon.errors import FetchError
from cindermon.metrics import GIB, Category, Limits, Snapshots, Volumes
from cindermon.openstack.identity import Session

log = logging.getLogger(__name__)

# Catalog service types, newest API first
SERVICE_PRIORITY = ["volumev3", "volumev2", "volume"]

VOLUME_TENANT_ATTR = "os-vol-tenant-attr:tenant_id"
SNAPSHOT_TENANT_ATTR = "os-extended-snapshot-attributes:project_id"

_LIMIT_FIELDS = [f.name for f in fields(Limits)]


class VolumeService(ABC):
    """Interface for the three category fetchers."""

    @abstractmethod
    def get_volumes(self, session: Session) -> Dict[str, Volumes]:
        """Volume totals keyed by tenant id, across every tenant."""
        ...

    @abstractmethod
    def get_snapshots(self, session: Session) -> Dict[str, Snapshots]:
        """Snapshot totals keyed by tenant id, across every tenant."""
        ...

    @abstractmethod
    def get_limits(self, session: Session) -> Limits:
        """Absolute limits of the session's own tenant."""
        ...


class CinderService(VolumeService):

    def __init__(self, service_type: str = "volumev3"):
        self.service_type = service_type

    def _base_url(self, session: Session, category: Category) -> str:
        url = session.endpoint_for(self.service_type)
        if not url:
            raise FetchError(category.value, f"no {self.service_type} endpoint in catalog")
        return url

    def _paginate(self, session: Session, url: str, key: str, category: Category) -> Iterator[dict]:
        params = {"all_tenants": 1}
        try:
            while url:
                body = session.get(url, params=params).json()
                yield from body.get(key, [])
                url = next(
                    (link["href"] for link in body.get(f"{key}_links", []) if link.get("rel") == "next"),
                    None,
                )
                params = None  # the next link already carries the query
        except (httpx.HTTPError, KeyError, TypeError, ValueError) as e:
            raise FetchError(category.value, str(e)) from e

    def _totals(self, items: Iterator[dict], tenant_attr: str, factory, category: Category):
        counts: Dict[str, int] = defaultdict(int)
        sizes: Dict[str, int] = defaultdict(int)
        try:
            for item in items:
                tenant_id = item.get(tenant_attr)
                if not tenant_id:
                    continue
                counts[tenant_id] += 1
                sizes[tenant_id] += int(item.get("size") or 0) * GIB
        except (AttributeError, TypeError, ValueError) as e:
            raise FetchError(category.value, str(e)) from e
        return {tenant_id: factory(count=counts[tenant_id], bytes=sizes[tenant_id]) for tenant_id in counts}

    def get_volumes(self, session: Session) -> Dict[str, Volumes]:
        url = self._base_url(session, Category.VOLUMES) + "/volumes/detail"
        items = self._paginate(session, url, "volumes", Category.VOLUMES)
        return self._totals(items, VOLUME_TENANT_ATTR, Volumes, Category.VOLUMES)

    def get_snapshots(self, session: Session) -> Dict[str, Snapshots]:
        url = self._base_url(session, Category.SNAPSHOTS) + "/snapshots/detail"
        items = self._paginate(session, url, "snapshots", Category.SNAPSHOTS)
        return self._totals(items, SNAPSHOT_TENANT_ATTR, Snapshots, Category.SNAPSHOTS)

    def get_limits(self, session: Session) -> Limits:
        url = self._base_url(session, Category.LIMITS) + "/limits"
        try:
            absolute = session.get(url).json()["limits"]["absolute"]
            # Cinder reports -1 for "unlimited"; keep it as is
            return Limits(**{name: int(absolute.get(name, 0)) for name in _LIMIT_FIELDS})
        except (httpx.HTTPError, KeyError, TypeError, ValueError) as e:
            raise FetchError(Category.LIMITS.value, str(e)) from e

    def __repr__(self) -> str:
        return f"CinderService({self.service_type!r})"


def available_service_types(session: Session) -> List[str]:
    return [t for t in SERVICE_PRIORITY if session.endpoint_for(t)]


def dispatch(session: Session) -> VolumeService:
    """Pick the newest block storage API the session's catalog offers."""
    types = available_service_types(session)
    if not types:
        raise FetchError("catalog", f"no block storage endpoint for tenant {session.tenant!r}")
    log.debug("Using %s API for tenant %r", types[0], session.tenant)
    return CinderService(types[0])
