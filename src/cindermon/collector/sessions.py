"""
Per-tenant session cache.

Sessions are created on first use and kept for the life of the collector.
There is no expiry check and no re-authentication: a tenant that has a
session keeps using it.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, Tuple

from cindermon.config import CollectorConfig
from cindermon.openstack.identity import Session
from cindermon.openstack.services import VolumeService

log = logging.getLogger(__name__)

Authenticator = Callable[[CollectorConfig, str], Session]
Dispatcher = Callable[[Session], VolumeService]


class SessionCache:

    def __init__(self, authenticate: Authenticator, dispatch: Dispatcher):
        self._authenticate = authenticate
        self._dispatch = dispatch
        self._sessions: Dict[str, Tuple[Session, VolumeService]] = {}
        self._lock = threading.Lock()

    def get_or_create(self, tenant: str, config: CollectorConfig) -> Tuple[Session, VolumeService]:
        """Return the cached (session, service) pair for `tenant`, logging in only the first time.

        A failed login is not cached, so the next call tries again. Each new
        session picks its own Cinder API version from its catalog.
        """
        with self._lock:
            cached = self._sessions.get(tenant)
            if cached is not None:
                return cached

            session = self._authenticate(config, tenant)
            try:
                service = self._dispatch(session)
            except Exception:
                session.close()
                raise

            self._sessions[tenant] = (session, service)
            log.info("New session for tenant %r (%d cached)", tenant, len(self._sessions))
            return session, service

    def close(self):
        with self._lock:
            for session, _ in self._sessions.values():
                session.close()
            self._sessions.clear()

    def __contains__(self, tenant: str) -> bool:
        return tenant in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
