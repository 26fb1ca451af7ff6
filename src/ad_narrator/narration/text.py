"""
Narration Text
==============

Observable single-value cell holding the visible narration.

Design Rules:
    - One writer: the stream assembler, running on the event loop
    - Observers are notified synchronously, in write order
    - Observers never get write access
    - A failing observer is logged and does not affect the others
"""

import logging
from typing import Callable, List


logger = logging.getLogger(__name__)


Observer = Callable[[str], None]


class NarrationText:
    """
    Visible narration text with change notification.

    Example:
        text = NarrationText()
        unsubscribe = text.subscribe(lambda value: print(value))
        text.set("傘")
        text.append(" - 雨")
        unsubscribe()
    """

    def __init__(self, initial: str = "") -> None:
        self._value = initial
        self._observers: List[Observer] = []
        self._version: int = 0

    @property
    def value(self) -> str:
        """Current text."""
        return self._value

    @property
    def version(self) -> int:
        """Number of changes so far."""
        return self._version

    @property
    def observer_count(self) -> int:
        return len(self._observers)

    def set(self, value: str) -> None:
        """Replace the text."""
        if value == self._value:
            return
        self._value = value
        self._notify()

    def append(self, delta: str) -> None:
        """Append to the text."""
        if not delta:
            return
        self._value += delta
        self._notify()

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """
        Register a change observer.

        Args:
            observer: Called with the new text after every change

        Returns:
            Function that removes the observer
        """
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def clear_observers(self) -> int:
        """
        Release every observer.

        Returns:
            Number of observers released.
        """
        released = len(self._observers)
        self._observers = []
        return released

    def _notify(self) -> None:
        self._version += 1
        for observer in list(self._observers):
            try:
                observer(self._value)
            except Exception as e:
                logger.error(f"Narration observer failed: {e}")
