"""Dispatch readiness events on file descriptors to per-descriptor callbacks."""

from __future__ import annotations

import logging
import select
from typing import Any, Callable, Optional, Union

log = logging.getLogger(__name__)

# An integer descriptor, or any object exposing a ``fileno()`` method.
FileLike = Union[int, Any]
MemberCallback = Callable[[int], bool]
EventsCallback = Callable[[list[tuple[int, int]]], None]

READABLE = select.POLLIN
WRITABLE = select.POLLOUT


def _fileno(fd: FileLike) -> int:
    return fd if isinstance(fd, int) else fd.fileno()


class PollSet:
    """A set of watched descriptors, each with an optional callback.

    Member callbacks receive the ready event flags and return a truthy value
    to stay registered; a falsy return removes the descriptor.
    """

    def __init__(self) -> None:
        self._use_epoll = hasattr(select, "epoll")
        self._poller = select.epoll() if self._use_epoll else select.poll()
        self._members: dict[int, Optional[MemberCallback]] = {}
        self._closed = False

    def add(self, fd: FileLike, events: int,
            callback: Optional[MemberCallback] = None) -> None:
        """Watch ``fd`` for ``events``; a descriptor may only be added once."""
        num = _fileno(fd)
        if num in self._members:
            raise ValueError(f"PollSet.add: unable to add member fd {num}")

        self._poller.register(num, events)
        self._members[num] = callback

    def remove(self, fd: FileLike) -> None:
        """Stop watching ``fd``; removing an unknown descriptor only warns."""
        num = _fileno(fd)
        try:
            self._poller.unregister(num)
        except (OSError, KeyError, ValueError) as exc:
            log.warning("PollSet.remove: unable to unregister fd %d: %s", num, exc)
        self._members.pop(num, None)

    def _poll(self, timeout_ms: int) -> list[tuple[int, int]]:
        if self._use_epoll:
            timeout = -1 if timeout_ms < 0 else timeout_ms / 1000.0
            return self._poller.poll(timeout, len(self._members))
        return self._poller.poll(None if timeout_ms < 0 else timeout_ms)

    def wait_once(self, timeout_ms: int = -1,
                  callback: Optional[EventsCallback] = None) -> int:
        """Wait up to ``timeout_ms`` (forever if negative) and dispatch events.

        With ``callback``, the list of ``(fd, flags)`` pairs goes to it instead
        of the member callbacks. Returns the number of ready descriptors.
        """
        if not self._members:
            return 0

        try:
            events = self._poll(timeout_ms)
        except InterruptedError:
            return 0

        if callback is not None:
            callback(events)
            return len(events)

        for num, flags in events:
            if num not in self._members:
                continue
            member = self._members[num]
            if member is not None and not member(flags):
                self.remove(num)

        return len(events)

    def empty(self) -> bool:
        return not self._members

    def close(self) -> None:
        """Release the underlying poller."""
        if self._closed:
            return
        self._closed = True
        self._members.clear()
        if self._use_epoll:
            self._poller.close()

    def __len__(self) -> int:
        return len(self._members)

    def __contains__(self, fd: object) -> bool:
        try:
            return _fileno(fd) in self._members
        except (AttributeError, TypeError):
            return False

    def __enter__(self) -> "PollSet":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()