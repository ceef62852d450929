"""
Keystone authentication and tenant listing over httpx.

Supports identity v3 (domains, projects) and v2.0 (tenants). The version
comes from the endpoint path when it names one, otherwise v3 if a domain
is configured and v2.0 if not.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

import httpx

from cindermon.config import CollectorConfig
from cindermon.errors import AuthenticationError, DirectoryError

log = logging.getLogger(__name__)

V3 = "v3"
V2 = "v2.0"


class Session:
    """An authenticated handle scoped to one tenant (or unscoped when tenant is '')."""

    def __init__(
        self,
        client: httpx.Client,
        token: str,
        tenant: str,
        tenant_id: str,
        catalog: Dict[str, str],
        identity_url: str = "",
        identity_version: str = V3,
    ):
        self._client = client
        self.token = token
        self.tenant = tenant
        self.tenant_id = tenant_id
        self.catalog = catalog          # service type -> public URL
        self.identity_url = identity_url
        self.identity_version = identity_version

    def endpoint_for(self, service_type: str) -> Optional[str]:
        url = self.catalog.get(service_type)
        return url.rstrip("/") if url else None

    def get(self, url: str, params: Optional[dict] = None) -> httpx.Response:
        """GET with the session token. Raises httpx.HTTPStatusError on 4xx/5xx."""
        response = self._client.get(
            url,
            params=params,
            headers={"X-Auth-Token": self.token, "Accept": "application/json"},
        )
        response.raise_for_status()
        return response

    def close(self):
        self._client.close()

    def __repr__(self) -> str:
        return f"Session(tenant={self.tenant!r}, tenant_id={self.tenant_id!r})"


def identity_base(config: CollectorConfig) -> Tuple[str, str]:
    """Return (version, base URL) for the configured Keystone endpoint."""
    url = config.endpoint.rstrip("/")
    if url.endswith("/" + V3):
        return V3, url
    if url.endswith("/" + V2):
        return V2, url
    if config.domain_name or config.domain_id:
        return V3, f"{url}/{V3}"
    return V2, f"{url}/{V2}"


def _domain_ref(config: CollectorConfig) -> dict:
    if config.domain_id:
        return {"id": config.domain_id}
    if config.domain_name:
        return {"name": config.domain_name}
    return {"id": "default"}


def _v3_body(config: CollectorConfig, tenant: str) -> dict:
    auth = {
        "identity": {
            "methods": ["password"],
            "password": {
                "user": {
                    "name": config.user,
                    "password": config.password,
                    "domain": _domain_ref(config),
                }
            },
        }
    }
    if tenant:
        auth["scope"] = {"project": {"name": tenant, "domain": _domain_ref(config)}}
    return {"auth": auth}


def _v2_body(config: CollectorConfig, tenant: str) -> dict:
    auth = {"passwordCredentials": {"username": config.user, "password": config.password}}
    if tenant:
        auth["tenantName"] = tenant
    return {"auth": auth}


def _v3_catalog(entries: List[dict]) -> Dict[str, str]:
    catalog = {}
    for entry in entries:
        for endpoint in entry.get("endpoints", []):
            if endpoint.get("interface") == "public" and endpoint.get("url"):
                catalog[entry["type"]] = endpoint["url"]
                break
    return catalog


def _v2_catalog(entries: List[dict]) -> Dict[str, str]:
    catalog = {}
    for entry in entries:
        endpoints = entry.get("endpoints", [])
        if endpoints and endpoints[0].get("publicURL"):
            catalog[entry["type"]] = endpoints[0]["publicURL"]
    return catalog


def _login(config: CollectorConfig, tenant: str, client: httpx.Client) -> Session:
    version, base = identity_base(config)

    if version == V3:
        response = client.post(f"{base}/auth/tokens", json=_v3_body(config, tenant))
        response.raise_for_status()
        token = response.headers["X-Subject-Token"]
        body = response.json()["token"]
        tenant_id = body.get("project", {}).get("id", "")
        catalog = _v3_catalog(body.get("catalog", []))
    else:
        response = client.post(f"{base}/tokens", json=_v2_body(config, tenant))
        response.raise_for_status()
        access = response.json()["access"]
        token = access["token"]["id"]
        tenant_id = access["token"].get("tenant", {}).get("id", "")
        catalog = _v2_catalog(access.get("serviceCatalog", []))

    return Session(client, token, tenant, tenant_id, catalog, base, version)


def authenticate(config: CollectorConfig, tenant: str) -> Session:
    """Exchange the configured credentials for a session scoped to `tenant`.

    Raises:
        AuthenticationError: Keystone rejected the request, was unreachable,
            or answered with something we could not read.
    """
    client = httpx.Client(timeout=config.timeout)
    try:
        session = _login(config, tenant, client)
    except (httpx.HTTPError, KeyError, ValueError) as e:
        client.close()
        raise AuthenticationError(
            f"Authentication failed for user {config.user!r} on tenant {tenant!r}: {e}"
        ) from e

    log.debug("Authenticated %s on tenant %r (id=%s)", config.user, tenant, session.tenant_id)
    return session


def list_tenants(config: CollectorConfig) -> Dict[str, str]:
    """Return {tenant id: tenant name} for every tenant the user can see.

    Raises:
        DirectoryError: login or listing failed. Never returns partial results.
    """
    try:
        session = authenticate(config, tenant="")
    except AuthenticationError as e:
        raise DirectoryError(f"Cannot list tenants: {e}") from e

    try:
        if session.identity_version == V3:
            items = session.get(f"{session.identity_url}/auth/projects").json()["projects"]
        else:
            items = session.get(f"{session.identity_url}/tenants").json()["tenants"]
        tenants = {item["id"]: item["name"] for item in items}
    except (httpx.HTTPError, KeyError, TypeError, ValueError) as e:
        raise DirectoryError(f"Cannot list tenants: {e}") from e
    finally:
        session.close()

    log.debug("Listed %d tenants", len(tenants))
    return tenants
