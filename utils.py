
""" Shared utilities used by all PBR Importer modules. """

import os
import re
import traceback
from typing import Iterable, Optional, Set

from settings import SHOW_DETAILS

from backend.image_lib import close_image


LOG_TYPES: list[str] = ["info", "warn", "error", "skip", "complete"]
# Defines log types printed to the console.

def log(message: str, message_kind: LOG_TYPES = "info") -> None:
# Maps different log types.

    if message == "":
        print("")
        return

    if message_kind not in LOG_TYPES:
        message_kind = "info"

    if message_kind == "info":
        print(f"   {message}")
    elif message_kind == "warn":
        print(f"⚠️ {message}")
    elif message_kind == "error":
        print(f"⛔ {message}")
    elif message_kind == "skip":
        print(f"❌ {message}")
    elif message_kind == "complete":
        print(f"✅ {message}")
    else:
        print(message)  # fallback

    # Print styles:
    # info: 3 whitespaces + message
    # warn: ⚠️ + message
    # error: ⛔ + message
    # skip: ❌ + message
    # complete: ✅ + message


def log_exception(message: str, error: BaseException) -> None:
# Logs an error with its message; the full traceback only if SHOW_DETAILS is set.

    log(f"{message}: {type(error).__name__}: {error}", "error")
    if SHOW_DETAILS:
        for line in traceback.format_exception(type(error), error, error.__traceback__):
            for sub_line in line.rstrip().splitlines():
                log(sub_line, "info")


def close_image_files(images: Iterable[Optional[object]]) -> None:
# Safely closes all opened images even if there is an error during image processing.

    processed_ids: Set[int] = set()
    for image in images:
        if image is None:
            continue
        image_id = id(image)
        if image_id in processed_ids:
            continue
        processed_ids.add(image_id)
        try:
            close_image(image) # Function from image_lib
        except (OSError, ValueError):
            pass


def normalize_path(path: str) -> str:
# Forward slashes only, so host paths compare equal regardless of the OS.
    return os.path.normpath(path).replace("\\", "/")


def file_stem(path: str) -> str:
    return os.path.splitext(os.path.basename(path))[0]


def sanitize_asset_name(raw_name: Optional[str], fallback: str = "Unnamed") -> str:
# Replaces characters that are invalid in file names with underscores.

    name: str = (raw_name or "").strip()
    if not name:
        return fallback
    return re.sub(r'[\\/:*?"<>|\x00-\x1f]', "_", name)


def validate_safe_folder_name(raw_folder_name: Optional[str]) -> bool:
# Validates that the custom folder name doesn't include unsupported characters.

    folder_name: str = (raw_folder_name or "")
    if folder_name.strip() == "":
        return False

    if any(invalid_character in folder_name for invalid_character in '\\/:*?"<>|'):
        log(f"Invalid folder name '{raw_folder_name}'. It cannot contain \\ / : * ? \" < > |", "error")
        # Prints error.
        return False
    return True
