from __future__ import annotations

from ingest.models import MostRecentEvent


class RecencyTracker:
    """Holds the single newest event seen since the last reset.

    A candidate replaces the held event only when strictly newer, so the
    first event offered wins a tie.
    """

    def __init__(self) -> None:
        self._current: MostRecentEvent | None = None

    def consider(self, event: MostRecentEvent) -> bool:
        if self._current is None or event.time > self._current.time:
            self._current = event
            return True
        return False

    def current(self) -> MostRecentEvent | None:
        return self._current

    def reset(self) -> None:
        self._current = None
