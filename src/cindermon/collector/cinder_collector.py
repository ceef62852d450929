"""
Collector for an OpenStack Cinder deployment.

One collect() call runs in strict phases:

  1. plan        parse the requested namespaces, decide tenants and categories
  2. admin       volumes and snapshots, concurrently, on the admin session
  3. limits      one fetch per tenant whose limits we haven't seen yet,
                 concurrently, each on that tenant's own session
  4. projection  one MetricValue per requested namespace

Any failure aborts the whole call. Volumes and snapshots are fetched
fresh every time; limits are fetched once per tenant and kept for the
life of the collector.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple

from cindermon.collector.base import MetricsCollector
from cindermon.collector.sessions import Authenticator, Dispatcher, SessionCache
from cindermon.collector.tasks import run_all
from cindermon.collector.tenants import TenantDirectory, TenantLister
from cindermon.config import CollectorConfig
from cindermon.metrics import Category, Limits, MetricContainer, MetricValue, Snapshots, Volumes
from cindermon.namespace import ParsedNamespace, enumerate_namespaces, parse_namespace, project
from cindermon.openstack import identity, services

log = logging.getLogger(__name__)


@dataclass
class CollectionPlan:
    tenants: Set[str] = field(default_factory=set)
    limits_tenants: Set[str] = field(default_factory=set)  # tenants whose limits were asked for
    need_volumes: bool = False
    need_snapshots: bool = False
    need_limits: bool = False


def build_plan(parsed: Sequence[ParsedNamespace]) -> CollectionPlan:
    plan = CollectionPlan()
    for ns in parsed:
        plan.tenants.add(ns.tenant)
        if ns.category is Category.LIMITS:
            plan.need_limits = True
            plan.limits_tenants.add(ns.tenant)
        elif ns.category is Category.VOLUMES:
            plan.need_volumes = True
        else:
            plan.need_snapshots = True
    return plan


class CinderCollector(MetricsCollector):

    def __init__(
        self,
        config: CollectorConfig,
        authenticate: Authenticator = identity.authenticate,
        list_tenants: TenantLister = identity.list_tenants,
        dispatch: Dispatcher = services.dispatch,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self._config = config
        self._clock = clock
        self._sessions = SessionCache(authenticate, dispatch)
        self._tenants = TenantDirectory(list_tenants)
        # tenant name -> Limits, append-only for the life of this collector
        self._limits: Dict[str, Limits] = {}
        self._limits_lock = threading.Lock()

    def enumerate_metrics(self, config: Optional[CollectorConfig] = None) -> List[Tuple[str, ...]]:
        self._tenants.resolve(config or self._config)
        return enumerate_namespaces(t.name for t in self._tenants.tenants())

    def collect(self, namespaces: Sequence[Sequence[str]]) -> List[MetricValue]:
        if not namespaces:
            return []

        # Validate everything before touching the network
        parsed = [parse_namespace(ns) for ns in namespaces]
        plan = build_plan(parsed)
        log.debug(
            "Plan: %d tenants, volumes=%s snapshots=%s limits=%s",
            len(plan.tenants), plan.need_volumes, plan.need_snapshots, plan.need_limits,
        )

        self._tenants.ensure(self._config)

        started = time.monotonic()
        volumes, snapshots = self._collect_admin_scoped(plan)
        self._collect_limits(plan)
        log.debug("Collection took %.2fs", time.monotonic() - started)

        now = self._clock()
        metrics = []
        for ns, request in zip(parsed, namespaces):
            container = MetricContainer(
                limits=self._limits.get(ns.tenant, Limits()),
                volumes=volumes.get(ns.tenant, Volumes()),
                snapshots=snapshots.get(ns.tenant, Snapshots()),
            )
            metrics.append(MetricValue(
                namespace=tuple(request),
                timestamp=now,
                data=project(container, ns.suffix),
            ))
        return metrics

    def _by_tenant_name(self, per_id: dict) -> dict:
        per_name = {}
        for tenant_id, value in per_id.items():
            tenant_name = self._tenants.name_for(tenant_id)
            if tenant_name is None:
                log.debug("Skipping data for unknown tenant id %s", tenant_id)
                continue
            per_name[tenant_name] = value
        return per_name

    def _collect_admin_scoped(self, plan: CollectionPlan) -> Tuple[Dict[str, Volumes], Dict[str, Snapshots]]:
        """Bulk volume/snapshot listings across all tenants, via the admin tenant."""
        if not (plan.need_volumes or plan.need_snapshots):
            return {}, {}

        admin = self._config.tenant
        session, service = self._sessions.get_or_create(admin, self._config)

        tasks = {}
        if plan.need_volumes:
            tasks[Category.VOLUMES] = lambda: service.get_volumes(session)
        if plan.need_snapshots:
            tasks[Category.SNAPSHOTS] = lambda: service.get_snapshots(session)

        results = run_all(tasks, name="admin-fetch")
        return (
            self._by_tenant_name(results.get(Category.VOLUMES, {})),
            self._by_tenant_name(results.get(Category.SNAPSHOTS, {})),
        )

    def _collect_limits(self, plan: CollectionPlan):
        """Fetch limits for tenants not yet cached; commit only if every fetch succeeded."""
        if not plan.need_limits:
            return

        missing = sorted(t for t in plan.limits_tenants if t not in self._limits)
        if not missing:
            log.debug("Limits cache hit for all %d tenants", len(plan.limits_tenants))
            return

        tasks = {}
        for tenant in missing:
            session, service = self._sessions.get_or_create(tenant, self._config)
            tasks[tenant] = lambda s=session, svc=service: svc.get_limits(s)

        fetched = run_all(tasks, name="limits-fetch")

        with self._limits_lock:
            for tenant, limits in fetched.items():
                self._limits.setdefault(tenant, limits)
        log.info("Cached limits for %d new tenants", len(fetched))

    def cached_limits(self) -> Dict[str, Limits]:
        with self._limits_lock:
            return dict(self._limits)

    def name(self) -> str:
        return f"Cinder ({self._config.endpoint}, admin tenant {self._config.tenant})"

    def close(self):
        self._sessions.close()
