"""
Core metric definitions for cindermon.

These mirror what Cinder reports per tenant: volume and snapshot totals
from the admin-scoped listings, and the absolute limits each tenant sees
from its own /limits endpoint.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Tuple, Union

Scalar = Union[int, float]

GIB = 1024 ** 3


class Category(enum.Enum):
    LIMITS = "limits"
    VOLUMES = "volumes"
    SNAPSHOTS = "snapshots"


@dataclass(frozen=True)
class Tenant:
    id: str
    name: str


@dataclass
class Volumes:
    count: int = 0
    bytes: int = 0


@dataclass
class Snapshots:
    count: int = 0
    bytes: int = 0


@dataclass
class Limits:
    """Absolute limits for one tenant, named the way Cinder names them."""

    # Quota ceilings
    maxTotalVolumes: int = 0
    maxTotalSnapshots: int = 0
    maxTotalVolumeGigabytes: int = 0
    maxTotalBackups: int = 0
    maxTotalBackupGigabytes: int = 0

    # Current usage against those ceilings
    totalVolumesUsed: int = 0
    totalSnapshotsUsed: int = 0
    totalGigabytesUsed: int = 0
    totalBackupsUsed: int = 0
    totalBackupGigabytesUsed: int = 0


@dataclass
class MetricContainer:
    """Everything known about one tenant during a single collection."""

    limits: Limits = field(default_factory=Limits)
    volumes: Volumes = field(default_factory=Volumes)
    snapshots: Snapshots = field(default_factory=Snapshots)


@dataclass
class MetricValue:
    """A single collected value, addressed by its namespace."""

    namespace: Tuple[str, ...]
    timestamp: datetime
    data: Scalar

    @property
    def path(self) -> str:
        return "/" + "/".join(self.namespace)

    def summary(self) -> dict:
        """Return a plain dict for display or JSON output."""
        return {
            "namespace": self.path,
            "timestamp": self.timestamp.isoformat(),
            "data": self.data,
        }
