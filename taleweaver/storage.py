"""JSON file storage for save records.

Every save is a whole-session snapshot stored in its own flat JSON file
under a configurable base directory. There is no database: reads and
writes go through plain helper methods that load and dump JSON.

Directory layout:

    {base}/
      saves/
        {save_id}.json        <- SaveData, full overwrite on every put
      settings.json           <- JsonConfigStore (see config.py)

put() writes through a temp file and os.replace(), so a reader never sees
a half-written save.
"""

from __future__ import annotations

import logging
import os
import random
import re
import string
import tempfile
import time
from pathlib import Path

from taleweaver.models import SaveData

logger = logging.getLogger(__name__)

_ID_ALPHABET = string.ascii_lowercase + string.digits
_SAVE_ID_RE = re.compile(r"save_\d+_[a-z0-9]+")


class InvalidSaveIdError(ValueError):
    """Raised for a save id that is not of the form save_<ms>_<base36>."""


def now_ms() -> int:
    return int(time.time() * 1000)


def generate_save_id() -> str:
    """Opaque save id: "save_<epoch ms>_<7 random base36 chars>"."""
    suffix = "".join(random.choices(_ID_ALPHABET, k=7))
    return f"save_{now_ms()}_{suffix}"


def is_valid_save_id(save_id: str) -> bool:
    return bool(_SAVE_ID_RE.fullmatch(save_id))


class SaveStore:
    def __init__(self, base_path: Path) -> None:
        self._base = base_path
        self._saves_root = base_path / "saves"
        self._saves_root.mkdir(parents=True, exist_ok=True)

    @property
    def base_path(self) -> Path:
        return self._base

    # ------------------------------------------------------------------
    # Internal path helpers
    # ------------------------------------------------------------------

    def _save_file(self, save_id: str) -> Path:
        if not is_valid_save_id(save_id):
            raise InvalidSaveIdError(f"Invalid save id: {save_id!r}")
        return self._saves_root / f"{save_id}.json"

    def _write_atomic(self, path: Path, content: str) -> None:
        with tempfile.NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            dir=str(path.parent),
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
        ) as tmp:
            tmp.write(content)
            tmp.flush()
            os.fsync(tmp.fileno())
            tmp_path = Path(tmp.name)
        os.replace(tmp_path, path)

    # ------------------------------------------------------------------
    # Saves
    # ------------------------------------------------------------------

    def put(self, save: SaveData) -> None:
        """Write a save, replacing any existing record with the same id."""
        self._write_atomic(
            self._save_file(save.id),
            save.model_dump_json(indent=2, exclude_none=True),
        )
        logger.debug("save written id=%s scenes=%d", save.id, len(save.scene_history))

    def get(self, save_id: str) -> SaveData | None:
        if not is_valid_save_id(save_id):
            return None
        path = self._save_file(save_id)
        if not path.is_file():
            return None
        return SaveData.model_validate_json(path.read_text(encoding="utf-8"))

    def list(self) -> list[SaveData]:
        """All saves, most recently updated first."""
        saves = [
            SaveData.model_validate_json(path.read_text(encoding="utf-8"))
            for path in self._saves_root.glob("*.json")
        ]
        saves.sort(key=lambda s: s.updated_at, reverse=True)
        return saves

    def delete(self, save_id: str) -> None:
        """Remove a save. Deleting an unknown id is not an error."""
        if not is_valid_save_id(save_id):
            return
        self._save_file(save_id).unlink(missing_ok=True)
        logger.debug("save deleted id=%s", save_id)
