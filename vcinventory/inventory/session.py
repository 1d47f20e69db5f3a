"""
vCenter session handle.

Path: vcinventory/inventory/session.py

Wraps a pyVmomi service instance. The session object is returned by
connect() and passed explicitly to whatever needs it.

Usage:
    with VCenterSession.connect("vc01.lab", creds) as session:
        for vm in session.virtual_machines():
            print(vm.name)
"""

import logging
import ssl
from typing import Any, Iterator

from pyVim.connect import Disconnect, SmartConnect
from pyVmomi import vim

from vcinventory.errors import SessionError
from vcinventory.vault.models import VaultCredentials


logger = logging.getLogger(__name__)


class VCenterSession:
    """Live connection to a vCenter or ESXi host."""

    def __init__(self, server: str, service_instance: Any):
        self.server = server
        self._si = service_instance

    @classmethod
    def connect(
        cls,
        server: str,
        credentials: VaultCredentials,
        port: int = 443,
        verify_ssl: bool = False,
    ) -> "VCenterSession":
        """
        Open a session.

        Args:
            server: vCenter/ESXi hostname or IP.
            credentials: Resolved username/password.
            port: HTTPS port.
            verify_ssl: Verify the server certificate.

        Raises:
            SessionError: Connection or login failed.
        """
        ssl_ctx = None
        if not verify_ssl:
            ssl_ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
            ssl_ctx.check_hostname = False
            ssl_ctx.verify_mode = ssl.CERT_NONE

        logger.info(f"Connecting to {server}:{port} as {credentials.username}")
        try:
            si = SmartConnect(
                host=server,
                user=credentials.username,
                pwd=credentials.password or "",
                port=port,
                sslContext=ssl_ctx,
            )
        except vim.fault.InvalidLogin as e:
            raise SessionError(f"Login to {server} failed for {credentials.username}: {e.msg}")
        except Exception as e:
            raise SessionError(f"Failed to connect to {server}:{port}: {e}")

        logger.info(f"Connected to {server}")
        return cls(server, si)

    @property
    def is_connected(self) -> bool:
        return self._si is not None

    def virtual_machines(self) -> Iterator[Any]:
        """
        Yield every VirtualMachine in the inventory.

        Raises:
            SessionError: Session closed or inventory query failed.
        """
        if self._si is None:
            raise SessionError(f"Session to {self.server} is closed")

        try:
            content = self._si.RetrieveContent()
            view = content.viewManager.CreateContainerView(
                content.rootFolder, [vim.VirtualMachine], True
            )
        except Exception as e:
            raise SessionError(f"Inventory query on {self.server} failed: {e}")

        try:
            vms = list(view.view)
        except Exception as e:
            raise SessionError(f"Inventory query on {self.server} failed: {e}")
        finally:
            view.Destroy()

        logger.info(f"{self.server}: {len(vms)} virtual machines found")
        yield from vms

    def disconnect(self):
        """Close the session. Safe to call more than once."""
        if self._si is None:
            return
        try:
            Disconnect(self._si)
            logger.debug(f"Disconnected from {self.server}")
        except Exception as e:
            logger.warning(f"{self.server}: Disconnect error (non-fatal): {e}")
        finally:
            self._si = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()


def open_session(
    server: str,
    credentials: VaultCredentials,
    port: int = 443,
    verify_ssl: bool = False,
) -> VCenterSession:
    """Default session factory used by the export runner."""
    return VCenterSession.connect(server, credentials, port=port, verify_ssl=verify_ssl)
