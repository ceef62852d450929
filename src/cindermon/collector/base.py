"""
Base collector interface.

This is the surface a plugin host drives: advertise the namespaces that
exist, then collect any subset of them on its own schedule. The CLI and
output layers only depend on this, not on where the numbers come from.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence, Tuple

from cindermon.config import CollectorConfig
from cindermon.metrics import MetricValue


class MetricsCollector(ABC):
    """Interface for all metrics sources."""

    @abstractmethod
    def enumerate_metrics(self, config: Optional[CollectorConfig] = None) -> List[Tuple[str, ...]]:
        """Every namespace this source can currently produce."""
        ...

    @abstractmethod
    def collect(self, namespaces: Sequence[Sequence[str]]) -> List[MetricValue]:
        """One value per requested namespace, in request order."""
        ...

    @abstractmethod
    def name(self) -> str:
        """Human-readable name for this source."""
        ...
