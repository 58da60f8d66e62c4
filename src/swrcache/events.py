"""Injectable focus and reconnect event sources."""

from collections.abc import Callable


class EventSource:
    """A minimal event source for ``init_focus`` / ``init_reconnect``.

    Usage:
        focus = EventSource()
        client = SWRClient(init_focus=focus.listen)
        focus.emit()  # e.g. from a window-focus hook
    """

    def __init__(self) -> None:
        self._callbacks: list[Callable[[], None]] = []

    def listen(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register ``callback``; returns a function that removes it."""
        self._callbacks.append(callback)

        def release() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return release

    def emit(self) -> None:
        """Invoke every registered callback."""
        for callback in list(self._callbacks):
            callback()

    def __len__(self) -> int:
        return len(self._callbacks)
