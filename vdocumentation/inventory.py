from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator, List, Optional, Protocol

from pyVmomi import vim, vmodl

from .errors import VCenterConnectionError
from .models import HostState, Target

logger = logging.getLogger("vdocumentation.inventory")


class InventoryService(Protocol):
    def all_hosts(self) -> List[Any]:
        ...

    def find_host(self, name: str) -> Optional[Any]:
        ...

    def hosts_in_cluster(self, name: str) -> Optional[List[Any]]:
        """Member hosts, or None when no cluster has that name."""
        ...

    def hosts_in_datacenter(self, name: str) -> Optional[List[Any]]:
        """Member hosts, or None when no datacenter has that name."""
        ...


def cluster_name(host: Any) -> str:
    parent = getattr(host, "parent", None)
    if isinstance(parent, vim.ClusterComputeResource):
        return getattr(parent, "name", "") or ""
    return ""


def datacenter_name(host: Any) -> str:
    current = getattr(host, "parent", None)
    while current is not None:
        if isinstance(current, vim.Datacenter):
            return getattr(current, "name", "") or ""
        current = getattr(current, "parent", None)
    return ""


def host_moid(host: Any) -> str:
    moid = getattr(host, "_moId", None)
    if moid:
        return str(moid)
    return str(getattr(host, "name", ""))


@contextmanager
def vsphere_faults() -> Iterator[None]:
    """Map session and transport faults raised by pyVmomi to VCenterConnectionError."""
    try:
        yield
    except (vim.fault.NotAuthenticated, vmodl.fault.SecurityError) as exc:
        raise VCenterConnectionError(f"vCenter session rejected: {exc.msg}") from exc
    except OSError as exc:
        raise VCenterConnectionError(f"vCenter unreachable: {exc}") from exc


def to_target(host: Any) -> Target:
    try:
        cluster = cluster_name(host)
        datacenter = datacenter_name(host)
    except Exception:
        logger.debug("Unable to resolve placement for %s", getattr(host, "name", host), exc_info=True)
        cluster, datacenter = "", ""
    with vsphere_faults():
        name = str(getattr(host, "name", ""))
        moid = host_moid(host)
    return Target(
        name=name,
        moid=moid,
        state=HostState.from_host(host),
        cluster=cluster,
        datacenter=datacenter,
        ref=host,
    )


class VCenterInventory:
    """InventoryService backed by pyVmomi container views."""

    def __init__(self, session) -> None:
        self.session = session

    @contextmanager
    def _view(self, vim_type, root=None) -> Iterator[List[Any]]:
        content = self.session.content
        view = None
        try:
            with vsphere_faults():
                view = content.viewManager.CreateContainerView(root or content.rootFolder, [vim_type], True)
                yield list(view.view)
        finally:
            if view is not None:
                try:
                    view.Destroy()
                except Exception:
                    logger.debug("Error destroying container view", exc_info=True)

    def _find(self, vim_type, name: str) -> Optional[Any]:
        wanted = name.strip().lower()
        with self._view(vim_type) as objects:
            for obj in objects:
                if (getattr(obj, "name", "") or "").lower() == wanted:
                    return obj
        return None

    def all_hosts(self) -> List[Any]:
        with self._view(vim.HostSystem) as hosts:
            return hosts

    def find_host(self, name: str) -> Optional[Any]:
        return self._find(vim.HostSystem, name)

    def hosts_in_cluster(self, name: str) -> Optional[List[Any]]:
        cluster = self._find(vim.ClusterComputeResource, name)
        if cluster is None:
            return None
        with vsphere_faults():
            return list(cluster.host or [])

    def hosts_in_datacenter(self, name: str) -> Optional[List[Any]]:
        datacenter = self._find(vim.Datacenter, name)
        if datacenter is None:
            return None
        with self._view(vim.HostSystem, root=datacenter.hostFolder) as hosts:
            return hosts
