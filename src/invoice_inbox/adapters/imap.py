"""IMAP mailbox adapter."""

from __future__ import annotations

import imaplib
import logging
from datetime import UTC, datetime
from email import message_from_bytes
from email.header import decode_header
from email.utils import parsedate_to_datetime
from typing import TYPE_CHECKING, cast

from invoice_inbox.config import DeliveryMode
from invoice_inbox.errors import MailboxConnectionError
from invoice_inbox.models import Attachment, InboundMessage

if TYPE_CHECKING:
    from collections.abc import Iterator
    from email.message import Message
    from types import TracebackType

    from invoice_inbox.config import ImapConfig

logger = logging.getLogger(__name__)

# RFC822 sets \Seen on retrieval; BODY.PEEK[] leaves the flag untouched.
_FETCH_MARKING_SEEN = "(RFC822)"
_FETCH_PEEK = "(BODY.PEEK[])"


class ImapMailbox:
    """Session over an IMAP folder that yields unread messages.

    Use as a context manager: entering connects, logs in and selects the
    folder read-write; leaving logs out. Connection and authentication
    problems surface as MailboxConnectionError.
    """

    def __init__(self, config: ImapConfig) -> None:
        self.config = config
        self._conn: imaplib.IMAP4 | None = None

    @property
    def marks_seen_on_fetch(self) -> bool:
        """True when fetching a message already commits it as read."""
        return self.config.delivery is DeliveryMode.AT_MOST_ONCE

    def __enter__(self) -> ImapMailbox:
        logger.info("Connecting to IMAP server %s", self.config.host)
        try:
            conn = self._connect()
            status, _data = conn.select(self.config.folder)
        except (imaplib.IMAP4.error, OSError) as exc:
            self._logout()
            msg = f"Could not open {self.config.folder} on {self.config.host}"
            raise MailboxConnectionError(msg) from exc

        if status != "OK":
            self._logout()
            msg = f"Could not select folder {self.config.folder}"
            raise MailboxConnectionError(msg)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self._logout()

    def fetch_unseen(self) -> Iterator[InboundMessage]:
        """Yield every unread message in the selected folder."""
        conn = self._require_connection()
        fetch_spec = _FETCH_MARKING_SEEN if self.marks_seen_on_fetch else _FETCH_PEEK

        try:
            msg_ids = self._search_unseen(conn)
        except (imaplib.IMAP4.error, OSError) as exc:
            msg = "IMAP search for unread messages failed"
            raise MailboxConnectionError(msg) from exc
        logger.info("Found %d unread messages", len(msg_ids))

        for msg_id in msg_ids:
            seq_id = msg_id.decode()
            try:
                raw_email = self._fetch_message(conn, seq_id, fetch_spec)
            except (imaplib.IMAP4.error, OSError) as exc:
                msg = f"IMAP fetch of message {seq_id} failed"
                raise MailboxConnectionError(msg) from exc
            if raw_email is None:
                continue

            email_msg = message_from_bytes(raw_email)
            try:
                yield self._parse_message(email_msg, seq_id)
            except (ValueError, LookupError):
                logger.warning("Failed to parse message %s", seq_id, exc_info=True)

    def mark_seen(self, seq_id: str) -> None:
        """Set the \\Seen flag on a message."""
        conn = self._require_connection()
        try:
            conn.store(seq_id, "+FLAGS", "\\Seen")
        except (imaplib.IMAP4.error, OSError) as exc:
            msg = f"Could not mark message {seq_id} as read"
            raise MailboxConnectionError(msg) from exc

    def _connect(self) -> imaplib.IMAP4:
        """Open the connection with a fixed timeout and authenticate."""
        conn_cls = imaplib.IMAP4_SSL if self.config.use_ssl else imaplib.IMAP4
        conn = conn_cls(self.config.host, self.config.port, timeout=self.config.timeout)
        self._conn = conn
        conn.login(self.config.username, self.config.password)
        return conn

    def _logout(self) -> None:
        if self._conn is None:
            return
        try:
            self._conn.logout()
        except Exception:
            logger.debug("Error during IMAP logout", exc_info=True)
        finally:
            self._conn = None
        logger.info("IMAP connection closed")

    def _require_connection(self) -> imaplib.IMAP4:
        if self._conn is None:
            msg = "Mailbox is not open; use it as a context manager"
            raise RuntimeError(msg)
        return self._conn

    @staticmethod
    def _search_unseen(conn: imaplib.IMAP4) -> list[bytes]:
        """Return sequence numbers of unread messages."""
        _status, data = conn.search(None, "UNSEEN")
        raw = data[0]
        if not raw:
            return []
        return cast("list[bytes]", raw.split())

    @staticmethod
    def _fetch_message(conn: imaplib.IMAP4, seq_id: str, fetch_spec: str) -> bytes | None:
        """Fetch a single message by sequence number."""
        _status, data = conn.fetch(seq_id, fetch_spec)
        if not data or data[0] is None:
            return None
        part = data[0]
        if isinstance(part, tuple):
            return part[1]
        return None

    def _parse_message(self, msg: Message, seq_id: str) -> InboundMessage:
        """Convert an email Message to an InboundMessage."""
        email_date = self._parse_date_header(msg.get("Date"))

        return InboundMessage(
            seq_id=seq_id,
            message_id=self._get_message_id(msg),
            subject=self._decode_header_value(msg.get("Subject", "")),
            sender=self._decode_header_value(msg.get("From", "")),
            date=email_date or datetime.now(tz=UTC),
            attachments=self._extract_attachments(msg),
        )

    @staticmethod
    def _parse_date_header(value: str | None) -> datetime | None:
        """Parse an RFC 2822 Date header; malformed dates become None."""
        if not value:
            return None
        try:
            return parsedate_to_datetime(value)
        except (TypeError, ValueError):
            logger.debug("Unparseable Date header %r", value)
            return None

    @staticmethod
    def _get_message_id(msg: Message) -> str:
        """Return the Message-ID header, or "" when the sender omitted it."""
        return (msg.get("Message-ID") or "").strip()

    @staticmethod
    def _decode_header_value(value: str | None) -> str:
        """Decode an RFC 2047 encoded header value."""
        if not value:
            return ""
        decoded_parts: list[str] = []
        for data, charset in decode_header(value):
            if isinstance(data, bytes):
                decoded_parts.append(data.decode(charset or "utf-8", errors="replace"))
            else:
                decoded_parts.append(data)
        return "".join(decoded_parts)

    @classmethod
    def _extract_attachments(cls, msg: Message) -> list[Attachment]:
        """Walk the MIME tree and collect parts with a filename or attachment disposition."""
        attachments: list[Attachment] = []

        for part in msg.walk():
            if part.get_content_maintype() == "multipart":
                continue

            filename = part.get_filename()
            disposition = str(part.get("Content-Disposition", ""))
            if not filename and "attachment" not in disposition.lower():
                continue

            raw_payload = part.get_payload(decode=True)
            if raw_payload is None:
                continue

            attachments.append(
                Attachment(
                    filename=cls._decode_header_value(filename) or "unnamed",
                    content_type=part.get_content_type(),
                    data=cast("bytes", raw_payload),
                )
            )

        return attachments
