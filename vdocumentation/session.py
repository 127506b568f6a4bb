"""vCenter session handle (pyVmomi SOAP)."""

from __future__ import annotations

import logging
import ssl
from typing import Any, Optional

from pyVim.connect import Disconnect, SmartConnect
from pyVmomi import vim

from .errors import VCenterConnectionError

logger = logging.getLogger("vdocumentation.session")


class VCenterSession:
    """Explicit session passed to the inventory, fetcher and collectors."""

    def __init__(self, server: str, username: str, password: str, *, port: int = 443, verify_ssl: bool = True) -> None:
        self.server = server
        self.username = username
        self.password = password
        self.port = port
        self.verify_ssl = verify_ssl
        self.service_instance: Optional[Any] = None
        self._content: Optional[Any] = None

    @classmethod
    def from_config(cls, config) -> "VCenterSession":
        return cls(
            config.server,
            config.username,
            config.password,
            port=config.port,
            verify_ssl=config.verify_ssl,
        )

    def _ssl_context(self) -> ssl.SSLContext:
        if self.verify_ssl:
            return ssl.create_default_context()
        return ssl._create_unverified_context()

    def connect(self) -> "VCenterSession":
        if not self.server or not self.username or not self.password:
            raise VCenterConnectionError("Incomplete vCenter configuration (server, username and password are required)")
        try:
            self.service_instance = SmartConnect(
                host=self.server,
                user=self.username,
                pwd=self.password,
                port=self.port,
                sslContext=self._ssl_context(),
            )
            self._content = self.service_instance.RetrieveContent()
        except vim.fault.InvalidLogin as exc:
            raise VCenterConnectionError(f"Login to {self.server} rejected: {exc.msg}") from exc
        except Exception as exc:
            raise VCenterConnectionError(f"Unable to connect to {self.server}: {exc}") from exc
        logger.info("Connected to %s (%s)", self.server, getattr(self._content.about, "fullName", ""))
        return self

    @property
    def content(self) -> Any:
        if self._content is None:
            raise VCenterConnectionError("No active vCenter session")
        return self._content

    def is_active(self) -> bool:
        if self._content is None:
            return False
        try:
            return self._content.sessionManager.currentSession is not None
        except Exception:
            logger.debug("Session liveness check failed", exc_info=True)
            return False

    def ensure_active(self) -> None:
        if not self.is_active():
            raise VCenterConnectionError(f"No active session to {self.server or 'vCenter'}")

    def close(self) -> None:
        if self.service_instance is None:
            return
        try:
            Disconnect(self.service_instance)
        except Exception:
            logger.debug("Error disconnecting SOAP session", exc_info=True)
        finally:
            self.service_instance = None
            self._content = None

    def __enter__(self) -> "VCenterSession":
        if self.service_instance is None:
            self.connect()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
