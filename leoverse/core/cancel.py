"""Cancellation token used at every polling wait boundary.

The token doubles as the poll loop's wait primitive: `wait(timeout)` blocks on a
`threading.Event`, so a cancel (SIGINT handler, deadline timer, or test code)
wakes the waiter immediately instead of after the full interval.

Tokens form a simple tree: cancelling a parent cancels every live child, which
lets the relay give each work item its own deadline while still honouring the
operator's interrupt.
"""

import threading


class CancelToken:
    """Event-backed cancellation signal with an optional deadline."""

    def __init__(self, parent: "CancelToken | None" = None) -> None:
        self._event = threading.Event()
        self._reason = "canceled"
        self._timer: threading.Timer | None = None
        self._children: list[CancelToken] = []
        # Reentrant: the SIGINT handler may cancel while this thread holds the lock.
        self._lock = threading.RLock()
        self._parent = parent
        if parent is not None:
            parent._adopt(self)

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str:
        return self._reason

    def child(self) -> "CancelToken":
        return CancelToken(parent=self)

    def cancel(self, reason: str = "canceled") -> None:
        """Fire the token and its children. Only the first reason is kept."""
        with self._lock:
            if self._event.is_set():
                return
            self._reason = reason
            self._event.set()
            children = list(self._children)
        for child in children:
            child.cancel(reason)

    def cancel_after(self, seconds: float) -> None:
        """Arm a deadline that cancels the token after `seconds`."""
        self._disarm()
        self._timer = threading.Timer(
            seconds, self.cancel, kwargs={"reason": f"deadline of {seconds:g}s exceeded"}
        )
        self._timer.daemon = True
        self._timer.start()

    def wait(self, timeout: float) -> bool:
        """Block for up to `timeout` seconds; return True if the token fired."""
        return self._event.wait(timeout)

    def close(self) -> None:
        """Disarm a pending deadline and detach from the parent token."""
        self._disarm()
        if self._parent is not None:
            self._parent._release(self)
            self._parent = None

    def _disarm(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _adopt(self, child: "CancelToken") -> None:
        with self._lock:
            self._children.append(child)
        # A cancel that copied the child list before the append has already set the event.
        if self._event.is_set():
            child.cancel(self._reason)

    def _release(self, child: "CancelToken") -> None:
        with self._lock:
            if child in self._children:
                self._children.remove(child)
