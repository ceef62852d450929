"""Stand-ins for Keystone and Cinder so the collector can run without HTTP."""

import threading
from collections import Counter

import pytest

from cindermon.collector.cinder_collector import CinderCollector
from cindermon.config import CollectorConfig
from cindermon.errors import AuthenticationError, FetchError
from cindermon.metrics import Limits, Snapshots, Volumes
from cindermon.openstack.services import VolumeService


class FakeSession:
    def __init__(self, tenant: str, tenant_id: str):
        self.tenant = tenant
        self.tenant_id = tenant_id
        self.closed = False

    def close(self):
        self.closed = True


class FakeIdentity:
    """Counts logins per tenant and can be told to reject some."""

    def __init__(self, tenants=None):
        self.tenants = dict(tenants or {})     # id -> name
        self.logins = Counter()
        self.listings = 0
        self.reject = set()
        self.fail_listing = False

    def authenticate(self, config, tenant):
        self.logins[tenant] += 1
        if tenant in self.reject:
            raise AuthenticationError(f"rejected {tenant}")
        ids = {name: tid for tid, name in self.tenants.items()}
        return FakeSession(tenant, ids.get(tenant, ""))

    def list_tenants(self, config):
        self.listings += 1
        if self.fail_listing:
            raise AuthenticationError("keystone down")
        return dict(self.tenants)


class FakeService(VolumeService):
    """Returns canned per-tenant data and records every call."""

    def __init__(self, volumes=None, snapshots=None, limits=None):
        self.volumes = dict(volumes or {})        # tenant id -> Volumes
        self.snapshots = dict(snapshots or {})    # tenant id -> Snapshots
        self.limits = dict(limits or {})          # tenant name -> Limits
        self.calls = Counter()
        self.fail = set()                         # categories or "limits:<tenant>"
        self._lock = threading.Lock()

    def _record(self, key):
        with self._lock:
            self.calls[key] += 1

    def get_volumes(self, session):
        self._record("volumes")
        if "volumes" in self.fail:
            raise FetchError("volumes", "boom")
        return dict(self.volumes)

    def get_snapshots(self, session):
        self._record("snapshots")
        if "snapshots" in self.fail:
            raise FetchError("snapshots", "boom")
        return dict(self.snapshots)

    def get_limits(self, session):
        self._record(f"limits:{session.tenant}")
        if f"limits:{session.tenant}" in self.fail:
            raise FetchError("limits", f"boom for {session.tenant}")
        return self.limits.get(session.tenant, Limits())


@pytest.fixture
def config():
    return CollectorConfig(
        endpoint="http://keystone.test:5000/v3",
        user="admin",
        password="secret",
        tenant="alpha",
    )


@pytest.fixture
def identity():
    return FakeIdentity({"id-alpha": "alpha", "id-beta": "beta", "id-gamma": "gamma"})


@pytest.fixture
def service():
    return FakeService(
        volumes={"id-alpha": Volumes(count=7, bytes=7 * 1024 ** 3), "id-beta": Volumes(count=2, bytes=0)},
        snapshots={"id-beta": Snapshots(count=3, bytes=30)},
        limits={
            "alpha": Limits(maxTotalVolumes=10),
            "beta": Limits(maxTotalVolumes=50, totalVolumesUsed=2),
            "gamma": Limits(maxTotalVolumes=5),
        },
    )


@pytest.fixture
def collector(config, identity, service):
    return CinderCollector(
        config,
        authenticate=identity.authenticate,
        list_tenants=identity.list_tenants,
        dispatch=lambda session: service,
    )
