"""Mailbox adapter protocol."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Iterator
    from types import TracebackType

    from invoice_inbox.models import InboundMessage


@runtime_checkable
class Mailbox(Protocol):
    """Protocol for an open mailbox session yielding unread messages."""

    def __enter__(self) -> Mailbox: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None: ...

    @property
    def marks_seen_on_fetch(self) -> bool: ...

    def fetch_unseen(self) -> Iterator[InboundMessage]: ...

    def mark_seen(self, seq_id: str) -> None: ...
