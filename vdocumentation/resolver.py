"""Turn a host/cluster/datacenter selector into an ordered list of targets."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from .errors import VCenterConnectionError
from .inventory import InventoryService, to_target
from .models import ResolutionWarning, Selector, SelectorPolicy, Target

logger = logging.getLogger("vdocumentation.resolver")


def _dedupe(targets: List[Target]) -> List[Target]:
    seen = set()
    unique = []
    for target in targets:
        if target.moid in seen:
            continue
        seen.add(target.moid)
        unique.append(target)
    return unique


def _sort_by_name(targets: List[Target]) -> List[Target]:
    return sorted(targets, key=lambda t: t.name.lower())


def _warn(warnings: List[ResolutionWarning], kind: str, name: str, message: str) -> None:
    warnings.append(ResolutionWarning(kind, name, message))
    logger.warning(message)


def _resolve_explicit(names: List[str], inventory: InventoryService, warnings: List[ResolutionWarning]) -> List[Target]:
    targets = []
    for name in names:
        try:
            host = inventory.find_host(name)
            if host is None:
                _warn(warnings, "host", name, f"Host '{name}' was not found")
                continue
            targets.append(to_target(host))
        except VCenterConnectionError:
            raise
        except Exception as exc:
            _warn(warnings, "host", name, f"Host '{name}' lookup failed: {exc}")
    return targets


def _resolve_members(
    kind: str,
    names: List[str],
    lookup: Callable[[str], Optional[List[Any]]],
    warnings: List[ResolutionWarning],
) -> List[Target]:
    targets = []
    label = kind.capitalize()
    for name in names:
        try:
            hosts = lookup(name)
            if hosts is None:
                _warn(warnings, kind, name, f"{label} '{name}' was not found")
                continue
            if not hosts:
                logger.info("%s '%s' has no hosts", label, name)
            members = [to_target(h) for h in hosts]
        except VCenterConnectionError:
            raise
        except Exception as exc:
            _warn(warnings, kind, name, f"{label} '{name}' lookup failed: {exc}")
            continue
        targets.extend(members)
    return targets


def resolve(
    selector: Selector,
    inventory: InventoryService,
    policy: SelectorPolicy = SelectorPolicy.FIRST_MATCH,
) -> Tuple[List[Target], List[ResolutionWarning]]:
    """
    Resolve the selector against the inventory.

    Explicit host names keep the caller's order, every other path is sorted by
    name. Targets are deduplicated by managed object id. Connection errors
    raised by the inventory propagate; any other lookup failure becomes a
    warning for that name.
    """
    warnings: List[ResolutionWarning] = []

    if selector.is_all:
        targets = []
        for host in inventory.all_hosts():
            try:
                targets.append(to_target(host))
            except VCenterConnectionError:
                raise
            except Exception as exc:
                _warn(warnings, "host", str(getattr(host, "_moId", host)), f"Host lookup failed: {exc}")
        targets = _sort_by_name(_dedupe(targets))
        logger.info("Resolved %s hosts from inventory", len(targets))
        return targets, warnings

    selector.check(policy)
    given = selector.given()

    if policy == SelectorPolicy.FIRST_MATCH and len(given) > 1:
        kept = given[0][0]
        for kind, names in given[1:]:
            logger.warning("Ignoring %s selector %s, %s selector takes precedence", kind, names, kept)
        given = given[:1]

    lookups: Dict[str, Callable[[str], Optional[List[Any]]]] = {
        "cluster": inventory.hosts_in_cluster,
        "datacenter": inventory.hosts_in_datacenter,
    }

    explicit: List[Target] = []
    grouped: List[Target] = []
    for kind, names in given:
        if kind == "host":
            explicit.extend(_resolve_explicit(names, inventory, warnings))
        else:
            grouped.extend(_resolve_members(kind, names, lookups[kind], warnings))

    targets = _dedupe(explicit + _sort_by_name(grouped))
    logger.info("Resolved %s hosts (%s warnings)", len(targets), len(warnings))
    return targets, warnings
