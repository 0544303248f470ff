"""Scene ledger: append-only scene history with a movable read cursor.

Browsing history is read-only time travel over text and images; it never
touches inventory or quests, which always reflect the latest turn. Only
the latest position accepts a new scene.
"""

from __future__ import annotations

from taleweaver.models import Scene


class LedgerError(RuntimeError):
    """Raised on a caller bug, e.g. appending while the cursor is in history."""


class SceneLedger:
    def __init__(self, scenes: list[Scene] | None = None, cursor: int | None = None) -> None:
        self._scenes: list[Scene] = list(scenes or [])
        self._cursor = -1
        if self._scenes:
            self._cursor = self.latest_index
            if cursor is not None:
                self.navigate(cursor)

    @property
    def scenes(self) -> list[Scene]:
        return self._scenes

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def latest_index(self) -> int:
        return len(self._scenes) - 1

    @property
    def is_viewing_latest(self) -> bool:
        return self._cursor == self.latest_index

    @property
    def current(self) -> Scene | None:
        if self._cursor < 0:
            return None
        return self._scenes[self._cursor]

    @property
    def latest(self) -> Scene | None:
        return self._scenes[-1] if self._scenes else None

    def __len__(self) -> int:
        return len(self._scenes)

    def append(self, scene: Scene) -> int:
        """Add a scene at the end and move the cursor onto it."""
        if not self.is_viewing_latest:
            raise LedgerError(
                f"Cannot append while viewing scene {self._cursor} of {len(self._scenes)}"
            )
        self._scenes.append(scene)
        self._cursor = self.latest_index
        return self._cursor

    def navigate(self, index: int) -> int:
        """Move the cursor, clamped to the history bounds. Returns the new cursor."""
        if not self._scenes:
            return self._cursor
        self._cursor = max(0, min(index, self.latest_index))
        return self._cursor

    def patch_segment_image(self, scene_index: int, segment_index: int, image: str) -> bool:
        """Replace one segment's image in place. Out-of-range indices are ignored."""
        if not 0 <= scene_index < len(self._scenes):
            return False
        segments = self._scenes[scene_index].segments
        if not 0 <= segment_index < len(segments):
            return False
        segments[segment_index].image = image
        return True
