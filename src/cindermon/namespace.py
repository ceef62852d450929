"""
Metric namespaces: flat, slash-delimited paths over the per-tenant data.

Every namespace looks like

    /cindermon/openstack/cinder/<tenant>/<category>/<leaf>

The schema below is the single source of truth for which leaves exist.
enumerate_namespaces() walks it to advertise metrics and project() walks
it to pull one value back out, so the two always agree.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple

from cindermon.errors import InvalidPathError, MalformedNamespaceError
from cindermon.metrics import Category, MetricContainer, Scalar

VENDOR = "cindermon"
FILESYSTEM = "openstack"
PLUGIN_NAME = "cinder"

PREFIX: Tuple[str, ...] = (VENDOR, FILESYSTEM, PLUGIN_NAME)

# prefix + tenant + category + at least one leaf segment
MIN_SEGMENTS = len(PREFIX) + 3

TENANT_INDEX = len(PREFIX)
CATEGORY_INDEX = TENANT_INDEX + 1


@dataclass(frozen=True)
class FieldSpec:
    category: Category
    path: Tuple[str, ...]   # leaf path below the category segment
    attr: str               # attribute on the category's dataclass


def _fields(category: Category, *attrs: str) -> Tuple[FieldSpec, ...]:
    return tuple(FieldSpec(category, (attr,), attr) for attr in attrs)


SCHEMA: Tuple[FieldSpec, ...] = (
    _fields(
        Category.LIMITS,
        "maxTotalVolumes",
        "maxTotalSnapshots",
        "maxTotalVolumeGigabytes",
        "maxTotalBackups",
        "maxTotalBackupGigabytes",
        "totalVolumesUsed",
        "totalSnapshotsUsed",
        "totalGigabytesUsed",
        "totalBackupsUsed",
        "totalBackupGigabytesUsed",
    )
    + _fields(Category.VOLUMES, "count", "bytes")
    + _fields(Category.SNAPSHOTS, "count", "bytes")
)

_BY_PATH = {(entry.category, entry.path): entry for entry in SCHEMA}


@dataclass(frozen=True)
class ParsedNamespace:
    tenant: str
    category: Category
    leaf: Tuple[str, ...]

    @property
    def suffix(self) -> Tuple[str, ...]:
        return (self.category.value,) + self.leaf


def enumerate_namespaces(tenant_names: Iterable[str]) -> List[Tuple[str, ...]]:
    """One namespace per schema leaf for every tenant."""
    namespaces = []
    seen = set()
    for tenant in tenant_names:
        if tenant in seen:
            continue
        seen.add(tenant)
        for entry in SCHEMA:
            namespaces.append(PREFIX + (tenant, entry.category.value) + entry.path)
    return namespaces


def parse_namespace(namespace: Sequence[str]) -> ParsedNamespace:
    """Split a requested namespace into tenant, category and leaf path.

    Raises MalformedNamespaceError when the namespace is too short or the
    category segment is not one we collect.
    """
    if len(namespace) < MIN_SEGMENTS:
        raise MalformedNamespaceError(
            f"Incorrect namespace length: expected at least {MIN_SEGMENTS} "
            f"segments, got {len(namespace)} ({join_namespace(namespace)})"
        )

    try:
        category = Category(namespace[CATEGORY_INDEX])
    except ValueError:
        raise MalformedNamespaceError(
            f"Unknown category {namespace[CATEGORY_INDEX]!r} in {join_namespace(namespace)}"
        ) from None

    return ParsedNamespace(
        tenant=namespace[TENANT_INDEX],
        category=category,
        leaf=tuple(namespace[CATEGORY_INDEX + 1:]),
    )


def project(container: MetricContainer, path_suffix: Sequence[str]) -> Scalar:
    """Pull the scalar addressed by `path_suffix` (category first) out of the container."""
    if not path_suffix:
        raise InvalidPathError("Empty metric path")

    try:
        category = Category(path_suffix[0])
    except ValueError:
        raise InvalidPathError(f"Unknown category {path_suffix[0]!r}") from None

    entry = _BY_PATH.get((category, tuple(path_suffix[1:])))
    if entry is None:
        raise InvalidPathError(f"No metric at {'/'.join(path_suffix)}")

    value = getattr(getattr(container, category.value), entry.attr)
    # bool is an int subclass but never a metric value
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidPathError(f"{'/'.join(path_suffix)} is not a scalar")
    return value


def split_namespace(text: str) -> Tuple[str, ...]:
    """'/a/b/c' -> ('a', 'b', 'c'). Leading and trailing slashes are ignored."""
    return tuple(part for part in text.strip().strip("/").split("/") if part)


def join_namespace(segments: Sequence[str]) -> str:
    return "/" + "/".join(segments)
