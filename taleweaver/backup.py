"""Backup and restore of the whole save set as one zip archive.

Images are pulled out of the JSON and stored as binary files, each field
replaced by a "ref:<filename>" pointer:

    backup.zip
      manifest.json              {version, app_name, created_at, save_count, save_ids}
      saves.json                 all saves, images replaced by "ref:..." strings
      images/
        s0_sc0_seg0_1a2b3c4d.png scene segment illustration
        s0_port_Mira_0.png       character portrait
        s0_thumb_1a2b3c4d.png    save thumbnail

create_backup() works on a deep copy and never mutates the saves it is
given. restore_backup() validates the manifest and the save list before
writing anything; a reference whose image is missing from the archive
restores as "" instead of failing the import.
"""

from __future__ import annotations

import io
import json
import logging
import re
import zipfile
import zlib
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ValidationError

from taleweaver import images
from taleweaver.models import SaveData
from taleweaver.storage import SaveStore, is_valid_save_id

logger = logging.getLogger(__name__)

BACKUP_VERSION = 1
APP_NAME = "Taleweaver"
IMAGE_REF_PREFIX = "ref:"
IMAGES_DIR = "images/"
MANIFEST_FILE = "manifest.json"
SAVES_FILE = "saves.json"


class BackupError(ValueError):
    """Raised when a backup cannot be created or an archive is not restorable."""


class BackupManifest(BaseModel):
    version: int
    app_name: str = APP_NAME
    created_at: str
    save_count: int
    save_ids: list[str]


class BackupProgress(BaseModel):
    phase: Literal["reading", "extracting", "packing", "done"]
    message: str
    percent: float


class RestoreProgress(BaseModel):
    phase: Literal["parsing", "images", "writing", "done"]
    message: str
    percent: float


class RestoreResult(BaseModel):
    save_count: int
    image_count: int


def _sanitize(value: str) -> str:
    return re.sub(r"[^a-zA-Z0-9_-]", "_", value)[:30]


def _read_entry(zf: zipfile.ZipFile, name: str) -> bytes:
    try:
        return zf.read(name)
    except (zipfile.BadZipFile, zlib.error, EOFError) as e:
        raise BackupError(f"Backup archive entry {name} is corrupt: {e}") from e


# ---------------------------------------------------------------------------
# Backup
# ---------------------------------------------------------------------------

def create_backup(
    saves: list[SaveData],
    on_progress: Callable[[BackupProgress], None] | None = None,
) -> bytes:
    """Pack every save into a zip archive and return its bytes."""

    def report(phase: str, message: str, percent: float) -> None:
        if on_progress:
            on_progress(BackupProgress(phase=phase, message=message, percent=percent))

    report("reading", "Reading saved adventures...", 5)
    if not saves:
        raise BackupError("No saves found to back up")

    processed = [save.model_copy(deep=True) for save in saves]
    packed: dict[str, bytes] = {}

    def extract(value: str, stem: str) -> str:
        """Move one embedded image into the archive and return its reference."""
        if not value or not images.is_data_url(value):
            return value
        try:
            data, mime = images.from_data_url(value)
        except images.ImageDecodeError:
            logger.warning("Skipping undecodable image for %s", stem)
            return ""
        filename = f"{stem}.{images.extension_for(mime)}"
        packed[filename] = data
        return IMAGE_REF_PREFIX + filename

    report("extracting", "Collecting illustrations and portraits...", 10)
    for si, save in enumerate(processed):
        report(
            "extracting",
            f"Packing adventure {si + 1}/{len(processed)}...",
            10 + (si / len(processed)) * 60,
        )
        for sci, scene in enumerate(save.scene_history):
            for segi, segment in enumerate(scene.segments):
                segment.image = extract(
                    segment.image,
                    f"s{si}_sc{sci}_seg{segi}_{images.short_hash(segment.image)}",
                )
        for ci, character in enumerate(save.known_characters):
            character.portrait_image = extract(
                character.portrait_image,
                f"s{si}_port_{_sanitize(character.name)}_{ci}",
            )
        save.thumbnail = extract(
            save.thumbnail, f"s{si}_thumb_{images.short_hash(save.thumbnail)}"
        )

    report("packing", "Writing manifest...", 75)
    manifest = BackupManifest(
        version=BACKUP_VERSION,
        created_at=datetime.now(timezone.utc).isoformat(),
        save_count=len(saves),
        save_ids=[s.id for s in saves],
    )

    report("packing", f"Compressing {len(packed)} images into the archive...", 85)
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=6) as zf:
        zf.writestr(MANIFEST_FILE, manifest.model_dump_json(indent=2))
        zf.writestr(
            SAVES_FILE,
            json.dumps([s.model_dump(mode="json", exclude_none=True) for s in processed], indent=2),
        )
        for filename, data in packed.items():
            zf.writestr(IMAGES_DIR + filename, data)

    report("done", f"Backup complete: {len(saves)} saves, {len(packed)} images.", 100)
    logger.info("backup created saves=%d images=%d", len(saves), len(packed))
    return buffer.getvalue()


def backup_store(
    store: SaveStore,
    on_progress: Callable[[BackupProgress], None] | None = None,
) -> bytes:
    return create_backup(store.list(), on_progress)


# ---------------------------------------------------------------------------
# Restore
# ---------------------------------------------------------------------------

def restore_backup(
    data: bytes,
    store: SaveStore,
    on_progress: Callable[[RestoreProgress], None] | None = None,
) -> RestoreResult:
    """Unpack an archive made by create_backup() into the store.

    Saves with an id already in the store are overwritten.
    """

    def report(phase: str, message: str, percent: float) -> None:
        if on_progress:
            on_progress(RestoreProgress(phase=phase, message=message, percent=percent))

    report("parsing", "Opening archive...", 5)
    try:
        zf = zipfile.ZipFile(io.BytesIO(data))
    except zipfile.BadZipFile as e:
        raise BackupError("Backup file is not a valid zip archive") from e

    with zf:
        names = set(zf.namelist())
        if MANIFEST_FILE not in names:
            raise BackupError("Invalid backup archive: manifest.json not found")
        try:
            manifest = BackupManifest.model_validate_json(_read_entry(zf, MANIFEST_FILE))
        except ValidationError as e:
            raise BackupError(f"Invalid backup manifest: {e}") from e
        if manifest.version != BACKUP_VERSION:
            raise BackupError(f"Unsupported backup version: {manifest.version}")

        report("parsing", "Reading saved adventures...", 15)
        if SAVES_FILE not in names:
            raise BackupError("Invalid backup archive: saves.json not found")
        try:
            raw_saves = json.loads(_read_entry(zf, SAVES_FILE))
            saves = [SaveData.model_validate(s) for s in raw_saves]
        except (ValueError, TypeError, ValidationError) as e:
            raise BackupError(f"Invalid saves.json: {e}") from e
        bad_ids = [s.id for s in saves if not is_valid_save_id(s.id)]
        if bad_ids:
            raise BackupError(f"Invalid save ids in saves.json: {bad_ids}")

        report("images", "Restoring illustrations and portraits...", 25)
        image_files = sorted(
            n for n in names if n.startswith(IMAGES_DIR) and not n.endswith("/")
        )
        cache: dict[str, bytes] = {}
        for i, name in enumerate(image_files):
            cache[name[len(IMAGES_DIR):]] = _read_entry(zf, name)
            report(
                "images",
                f"Restoring image {i + 1}/{len(image_files)}...",
                25 + (i / len(image_files)) * 40,
            )

    def resolve(value: str) -> str:
        if not value.startswith(IMAGE_REF_PREFIX):
            return value
        filename = value[len(IMAGE_REF_PREFIX):]
        blob = cache.get(filename)
        if blob is None:
            logger.warning("Backup references missing image %s", filename)
            return ""
        return images.to_data_url(blob, images.mime_for(filename))

    report("writing", "Writing saves...", 70)
    for si, save in enumerate(saves):
        report(
            "writing",
            f"Saving adventure {si + 1}/{len(saves)}...",
            70 + (si / len(saves)) * 25,
        )
        for scene in save.scene_history:
            for segment in scene.segments:
                segment.image = resolve(segment.image)
        for character in save.known_characters:
            character.portrait_image = resolve(character.portrait_image)
        save.thumbnail = resolve(save.thumbnail)
        store.put(save)

    report("done", f"Restore complete: {len(saves)} adventures restored.", 100)
    logger.info("backup restored saves=%d images=%d", len(saves), len(cache))
    return RestoreResult(save_count=len(saves), image_count=len(cache))
