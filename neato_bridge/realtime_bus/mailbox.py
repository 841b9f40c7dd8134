from __future__ import annotations

import asyncio
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class CommandMailbox(Generic[T]):
    """
    Single-slot, latest-value-wins channel.

    ``set`` overwrites the slot and wakes every waiting receiver. A receiver
    only ever sees the value current at the moment it wakes up; intermediate
    values are never queued or replayed. Must be used from the event loop
    thread (other threads go through ``loop.call_soon_threadsafe``).
    """

    def __init__(self, initial: Optional[T] = None) -> None:
        self._value: Optional[T] = initial
        self._version = 0
        self._changed = asyncio.Event()

    @property
    def value(self) -> Optional[T]:
        return self._value

    def set(self, value: Optional[T]) -> None:
        self._value = value
        self._version += 1
        changed, self._changed = self._changed, asyncio.Event()
        changed.set()

    def subscribe(self) -> "MailboxReceiver[T]":
        return MailboxReceiver(self)


class MailboxReceiver(Generic[T]):
    def __init__(self, mailbox: CommandMailbox[T]) -> None:
        self._mailbox = mailbox
        self._seen = mailbox._version

    async def wait(self) -> Optional[T]:
        """Suspend until the slot changes from the last value this receiver observed."""
        while self._seen == self._mailbox._version:
            await self._mailbox._changed.wait()
        self._seen = self._mailbox._version
        return self._mailbox._value
