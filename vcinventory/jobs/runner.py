"""
Export Runner - one inventory export run.

Path: vcinventory/jobs/runner.py

Flow:
1. Ensure the vault exists
2. Resolve credentials for the source server
3. Open a vCenter session
4. Shape every VM into a record
5. Apply filters
6. Write the workbook
7. Mail it (optional)

The session is always disconnected, whichever step fails.
"""

import logging
import time
import traceback
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from vcinventory.core.config import Config, get_config
from vcinventory.errors import (
    ConfigError,
    CredentialError,
    ExportError,
    MailError,
    SessionError,
    VaultUnavailable,
    VCInventoryError,
)
from vcinventory.export.excel import ExcelExporter, ReportMetadata
from vcinventory.export.mail import GraphMailer
from vcinventory.inventory.filters import apply_filters
from vcinventory.inventory.session import VCenterSession, open_session
from vcinventory.inventory.shaper import shape_records
from vcinventory.vault.models import VaultCredentials
from vcinventory.vault.resolver import CredentialPrompter, CredentialResolver


# Module logger
logger = logging.getLogger(__name__)

# Always shaped so the filter chain can run, even if not exported
FILTER_PROPERTIES = ("Name", "PowerState")

SessionFactory = Callable[[str, VaultCredentials, int, bool], VCenterSession]
MailerFactory = Callable[[str, str, str, int], GraphMailer]


class ErrorCategory(Enum):
    """Which stage of a run failed."""
    SUCCESS = "success"
    CONFIG = "config"
    VAULT = "vault"
    CREDENTIAL = "credential"
    SESSION = "session"
    EXPORT = "export"
    MAIL = "mail"
    UNKNOWN = "unknown"


def categorize_error(exception: Exception) -> ErrorCategory:
    """Map an exception to the run stage it belongs to."""
    if isinstance(exception, ConfigError):
        return ErrorCategory.CONFIG
    if isinstance(exception, VaultUnavailable):
        return ErrorCategory.VAULT
    if isinstance(exception, CredentialError):
        return ErrorCategory.CREDENTIAL
    if isinstance(exception, SessionError):
        return ErrorCategory.SESSION
    if isinstance(exception, ExportError):
        return ErrorCategory.EXPORT
    if isinstance(exception, MailError):
        return ErrorCategory.MAIL
    return ErrorCategory.UNKNOWN


@dataclass
class ExportResult:
    """Result of an export run."""
    server: str
    total_vms: int = 0
    exported_vms: int = 0
    output_path: Optional[Path] = None
    credential_user: Optional[str] = None
    mail_sent: Optional[bool] = None  # None = not attempted
    mail_error: Optional[str] = None
    duration_ms: float = 0
    error: Optional[str] = None
    error_category: ErrorCategory = ErrorCategory.SUCCESS
    error_traceback: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None and self.mail_sent is not False

    @property
    def suggest_credential_setup(self) -> bool:
        """Connection and credential problems are usually fixed by re-running setup."""
        return self.error_category in (
            ErrorCategory.VAULT,
            ErrorCategory.CREDENTIAL,
            ErrorCategory.SESSION,
        )

    def __repr__(self) -> str:
        if self.success:
            return f"ExportResult(server={self.server}, exported={self.exported_vms}/{self.total_vms})"
        return f"ExportResult(server={self.server}, category={self.error_category.value}, error={self.error!r})"


def _default_mailer(tenant_id: str, client_id: str, client_secret: str, max_bytes: int) -> GraphMailer:
    return GraphMailer(tenant_id, client_id, client_secret, max_attachment_bytes=max_bytes)


class ExportRunner:
    """
    Execute one inventory export.

    Usage:
        runner = ExportRunner(resolver=resolver, prompter=ConsolePrompter())
        result = runner.run()
        if not result.success:
            print(result.error)
    """

    def __init__(
        self,
        resolver: CredentialResolver,
        config: Optional[Config] = None,
        prompter: Optional[CredentialPrompter] = None,
        allow_prompt: bool = True,
        session_factory: SessionFactory = open_session,
        exporter: Optional[ExcelExporter] = None,
        mailer_factory: MailerFactory = _default_mailer,
    ):
        self.config = config or get_config()
        self.resolver = resolver
        self.prompter = prompter
        self.allow_prompt = allow_prompt
        self.session_factory = session_factory
        self.exporter = exporter or ExcelExporter(self.config.export.file_prefix)
        self.mailer_factory = mailer_factory

    def run(
        self,
        server: Optional[str] = None,
        preferred_username: Optional[str] = None,
        output_dir: Optional[Path] = None,
        send_mail: Optional[bool] = None,
    ) -> ExportResult:
        """
        Run the export.

        Args:
            server: Override config source_server_host.
            preferred_username: Override config preferred_username.
            output_dir: Override config export.output_dir.
            send_mail: Override config email.enabled.

        Returns:
            ExportResult; errors are recorded, not raised.
        """
        start_time = time.time()
        config = self.config
        server = server or config.source_server_host
        result = ExportResult(server=server or "")
        session = None

        try:
            if not server:
                raise ConfigError("No source server configured (source_server_host)")

            if not self.resolver.ensure_vault():
                logger.warning("Vault could not be created; credential lookup will fail")

            resolved = self.resolver.resolve(
                server,
                preferred_username=preferred_username or config.preferred_username,
                allow_prompt=self.allow_prompt,
                prompter=self.prompter,
            )
            result.credential_user = resolved.username

            session = self.session_factory(server, resolved.credentials, config.port, config.verify_ssl)

            properties = config.property_names
            shape_props = properties + [p for p in FILTER_PROPERTIES if p not in properties]
            records = shape_records(session.virtual_machines(), shape_props)
            result.total_vms = len(records)

            kept = apply_filters(records, config.filters)
            result.exported_vms = len(kept)
            logger.info(f"{server}: {len(kept)}/{len(records)} VMs after filtering")

            metadata = ReportMetadata(
                server=server,
                total_vms=result.total_vms,
                exported_vms=result.exported_vms,
                filters=config.filters.describe(),
                property_descriptions=config.vm_properties,
                extra=[("Credential user", resolved.username)],
            )
            rows = [record.project(properties) for record in kept]
            result.output_path = self.exporter.export(
                rows,
                properties,
                metadata,
                output_dir or config.export.output_dir,
            )

            if config.email.enabled if send_mail is None else send_mail:
                result.mail_sent = self._send_mail(result, metadata)

        except VCInventoryError as e:
            result.error = str(e)
            result.error_category = categorize_error(e)
            logger.error(f"Export failed [{result.error_category.value}]: {e}")

        except Exception as e:
            result.error = f"Unexpected error: {e}"
            result.error_category = ErrorCategory.UNKNOWN
            result.error_traceback = traceback.format_exc()
            logger.error(f"Export failed: {e}", exc_info=True)

        finally:
            if session is not None:
                session.disconnect()
            result.duration_ms = (time.time() - start_time) * 1000

        return result

    def _send_mail(self, result: ExportResult, metadata: ReportMetadata) -> bool:
        """Mail the workbook. Failures are recorded on the result."""
        email = self.config.email

        try:
            missing = email.missing_settings()
            if missing:
                raise MailError(f"Email settings missing: {', '.join(missing)}")

            secret = self.resolver.get_named_secret(email.client_secret_name)
            if not secret or not secret.password:
                raise MailError(
                    f"Graph client secret '{email.client_secret_name}' not found in vault"
                )

            mailer = self.mailer_factory(
                email.tenant_id,
                email.client_id,
                secret.password,
                int(email.max_attachment_mb * 1024 * 1024),
            )
            body = (
                f"{email.body}\n\n"
                f"Source server: {metadata.server}\n"
                f"VMs exported: {metadata.exported_vms} of {metadata.total_vms}\n"
            )
            mailer.send_or_raise(
                email.sender,
                email.recipients,
                f"{email.subject} - {metadata.server}",
                body,
                [result.output_path],
            )
            return True

        except (MailError, VaultUnavailable) as e:
            result.mail_error = str(e)
            logger.error(f"Mail failed: {e}")
            return False
