"""
Report mail through Microsoft Graph.

Path: vcinventory/export/mail.py

Uses an app registration (client credentials flow) with Mail.Send
permission. Delivery is best effort: send() logs and returns False on
failure, send_or_raise() raises MailError.
"""

import base64
import logging
from pathlib import Path
from typing import List, Optional, Sequence

import msal
import requests

from vcinventory.errors import MailError


logger = logging.getLogger(__name__)

LOGIN_URL = "https://login.microsoftonline.com"
GRAPH_URL = "https://graph.microsoft.com"
GRAPH_BASE = "https://graph.microsoft.com/v1.0"

DEFAULT_MAX_ATTACHMENT_BYTES = 3 * 1024 * 1024


class GraphMailer:
    """
    Send mail with file attachments through Graph sendMail.

    Usage:
        mailer = GraphMailer(tenant_id, client_id, client_secret)
        ok = mailer.send("reports@corp.com", ["ops@corp.com"],
                         "VM inventory", "Attached.", [report_path])
    """

    def __init__(
        self,
        tenant_id: str,
        client_id: str,
        client_secret: str,
        max_attachment_bytes: int = DEFAULT_MAX_ATTACHMENT_BYTES,
        timeout: int = 60,
    ):
        self.tenant_id = tenant_id
        self.client_id = client_id
        self._client_secret = client_secret
        self.max_attachment_bytes = max_attachment_bytes
        self.timeout = timeout

    def _acquire_token(self) -> str:
        client_app = msal.ConfidentialClientApplication(
            self.client_id,
            client_credential=self._client_secret,
            authority=f"{LOGIN_URL}/{self.tenant_id}",
        )
        token = client_app.acquire_token_for_client(scopes=[f"{GRAPH_URL}/.default"])

        if "access_token" not in token:
            error = token.get("error_description") or token.get("error") or "unknown error"
            raise MailError(f"Graph token request failed: {error}")
        return token["access_token"]

    def _attachment(self, path: Path) -> dict:
        path = Path(path)
        if not path.is_file():
            raise MailError(f"Attachment not found: {path}")

        size = path.stat().st_size
        if size > self.max_attachment_bytes:
            raise MailError(
                f"Attachment {path.name} is {size} bytes; "
                f"limit is {self.max_attachment_bytes} bytes"
            )

        return {
            "@odata.type": "#microsoft.graph.fileAttachment",
            "name": path.name,
            "contentBytes": base64.b64encode(path.read_bytes()).decode(),
        }

    def build_message(
        self,
        recipients: Sequence[str],
        subject: str,
        body: str,
        attachments: Optional[Sequence[Path]] = None,
    ) -> dict:
        """Build the sendMail request body."""
        return {
            "message": {
                "subject": subject,
                "body": {"contentType": "Text", "content": body},
                "toRecipients": [
                    {"emailAddress": {"address": address}} for address in recipients
                ],
                "attachments": [self._attachment(p) for p in attachments or []],
            },
            "saveToSentItems": False,
        }

    def send_or_raise(
        self,
        sender: str,
        recipients: Sequence[str],
        subject: str,
        body: str,
        attachments: Optional[Sequence[Path]] = None,
    ):
        """
        Send a message.

        Raises:
            MailError: Bad input, token failure or non-202 response.
        """
        if not sender:
            raise MailError("No sender configured")
        recipients: List[str] = [r for r in recipients if r]
        if not recipients:
            raise MailError("No recipients configured")

        payload = self.build_message(recipients, subject, body, attachments)
        headers = {
            "Authorization": f"Bearer {self._acquire_token()}",
            "Content-Type": "application/json",
        }

        try:
            response = requests.post(
                f"{GRAPH_BASE}/users/{sender}/sendMail",
                json=payload,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise MailError(f"Graph request failed: {e}")

        if response.status_code != 202:
            raise MailError(f"Graph sendMail returned {response.status_code}: {response.text[:500]}")

        logger.info(f"Mail sent from {sender} to {len(recipients)} recipient(s)")

    def send(
        self,
        sender: str,
        recipients: Sequence[str],
        subject: str,
        body: str,
        attachments: Optional[Sequence[Path]] = None,
    ) -> bool:
        """Best-effort send. Returns True on success."""
        try:
            self.send_or_raise(sender, recipients, subject, body, attachments)
            return True
        except MailError as e:
            logger.error(f"Mail failed: {e}")
            return False
