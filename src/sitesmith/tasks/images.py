"""Image compression with Pillow."""

from __future__ import annotations

import io
import logging
import shutil
from pathlib import Path
from typing import Any

from PIL import Image, UnidentifiedImageError

from ..definitions import TaskDefinition
from ..errors import ConfigurationError, ExternalToolError
from ..global_config import JPEG_QUALITY
from .base import TaskContext, resolve_inputs, step_result

logger = logging.getLogger(__name__)

# optimization_level (0-7, optipng style) -> zlib compress_level
_PNG_COMPRESS_LEVELS = {0: 6, 1: 9}


def validate_imagemin(task: TaskDefinition) -> None:
    quality = task.option("quality", JPEG_QUALITY)
    if not isinstance(quality, int) or not 1 <= quality <= 95:
        raise ConfigurationError(f"{task.name}: quality must be an integer between 1 and 95, got {quality!r}")
    level = task.option("optimization_level", 1)
    if not isinstance(level, int) or not 0 <= level <= 7:
        raise ConfigurationError(f"{task.name}: optimization_level must be between 0 and 7, got {level!r}")


def is_up_to_date(source: Path, target: Path) -> bool:
    """Return True if target exists and is at least as new as source."""
    if not target.exists():
        return False
    return target.stat().st_mtime_ns >= source.stat().st_mtime_ns


def encode_image(source: Path, *, quality: int, progressive: bool, optimization_level: int) -> bytes:
    """Re-encode an image in its own format with size-oriented settings.

    Raises:
        ExternalToolError: If the file is not a readable image.
    """
    buffer = io.BytesIO()
    try:
        with Image.open(source) as img:
            fmt = img.format
            if fmt == "JPEG":
                if img.mode not in ("RGB", "L", "CMYK"):
                    img = img.convert("RGB")
                img.save(buffer, format="JPEG", quality=quality, optimize=True, progressive=progressive)
            elif fmt == "PNG":
                compress_level = _PNG_COMPRESS_LEVELS.get(optimization_level, 9)
                img.save(buffer, format="PNG", optimize=optimization_level > 0, compress_level=compress_level)
            elif fmt == "GIF":
                img.save(buffer, format="GIF", optimize=True, save_all=getattr(img, "is_animated", False))
            else:
                return source.read_bytes()
    except (UnidentifiedImageError, OSError) as exc:
        raise ExternalToolError("imagemin", str(exc), file=source) from exc
    return buffer.getvalue()


class ImageMinTask:
    """Compress images into the output directory, preserving relative paths.

    The re-encoded bytes are only used when they are smaller than the source;
    otherwise the source is copied as-is. With `newer`, files whose output is
    already at least as new as the source are skipped without touching the
    output.
    """

    def run(self, task: TaskDefinition, context: TaskContext) -> dict[str, Any]:
        base = context.base_dir(task)
        dest = context.resolve(task.outputs[0])
        newer = bool(task.option("newer", False))
        quality = task.option("quality", JPEG_QUALITY)
        progressive = bool(task.option("progressive", False))
        level = task.option("optimization_level", 1)

        items: list[dict[str, Any]] = []
        skipped = 0
        saved_total = 0
        for source in resolve_inputs(task, context):
            target = dest / source.relative_to(base)
            if newer and is_up_to_date(source, target):
                skipped += 1
                continue

            original = source.read_bytes()
            encoded = encode_image(source, quality=quality, progressive=progressive, optimization_level=level)
            target.parent.mkdir(parents=True, exist_ok=True)
            if len(encoded) < len(original):
                target.write_bytes(encoded)
                saved = len(original) - len(encoded)
            else:
                shutil.copyfile(source, target)
                saved = 0
            saved_total += saved
            items.append(
                {"item": context.rel(source), "status": "compressed", "detail": f"saved {saved} bytes"}
            )

        logger.info("Compressed %d image(s), skipped %d, saved %d bytes", len(items), skipped, saved_total)
        return step_result(items, skipped=skipped, message=f"Saved {saved_total} bytes")
