
""" Classifies texture files into PBR roles by keywords found in their file names. """

import os
from typing import Callable, Iterable, List, Optional, Set

from backend.texture_classes import KeywordTable, TextureHandle, TextureRole, TextureSearchResult

from settings import KEYWORDS, PACKED_TEXTURE_SUFFIX, SHOW_DETAILS
from utils import file_stem, log




def classify_name(file_name: str, keyword_table: KeywordTable) -> TextureRole:
# Returns the first role (in table order) with a keyword contained in the lower-cased file name.

    file_name_lower: str = os.path.basename(file_name).lower()
    for role, keywords in keyword_table.items():
        if role is TextureRole.UNKNOWN:
            continue
        if any(keyword and keyword.lower() in file_name_lower for keyword in keywords):
            return role
    return TextureRole.UNKNOWN


def classify(file_paths: Iterable[str], keyword_table: Optional[KeywordTable] = None, is_readable: Optional[Callable[[str], bool]] = None) -> TextureSearchResult:
# Partitions files into role candidate lists, keeping the input order within each role.
# Pure: the readability lookup only decorates the created handles.

    table: KeywordTable = KEYWORDS if keyword_table is None else keyword_table
    result = TextureSearchResult()

    for file_path in file_paths:
        file_name: str = os.path.basename(file_path)
        role: TextureRole = classify_name(file_name, table)
        readable: bool = is_readable(file_path) if is_readable is not None else True
        result.candidates(role).append(TextureHandle(path=file_path, name=file_name, role=role, readable=readable))

    return result


def is_generated_packed_texture(file_path: str, packed_suffix: str = PACKED_TEXTURE_SUFFIX) -> bool:
# True for metallic+smoothness maps written by the importer itself, e.g., "Chair_MetallicSmoothness_packed.png".
# Those are left out of the scan, otherwise a second pass would see them as extra metallic candidates.

    suffix: str = (packed_suffix or "").strip().lower()
    if not suffix:
        return False
    return file_stem(file_path).lower().endswith(f"_{suffix}")


def find_textures(host, folder: str, keyword_table: Optional[KeywordTable] = None, packed_suffix: str = PACKED_TEXTURE_SUFFIX, exclude: Iterable[str] = ()) -> TextureSearchResult:
# Scans a host folder and classifies its images. Skips previously generated packed maps.
# Exclude holds exact paths left out whatever their name, e.g., the packed target when the suffix is empty.

    if not host.folder_exists(folder):
        log(f"Texture folder does not exist: {folder}", "error")
        return TextureSearchResult()

    excluded_paths: Set[str] = {host.resolve(path) for path in exclude}
    image_paths: List[str] = [
        path for path in host.list_images(folder)
        if not is_generated_packed_texture(path, packed_suffix) and host.resolve(path) not in excluded_paths]
    result = classify(image_paths, keyword_table, is_readable=lambda path: host.get_texture_flags(path).readable)

    if SHOW_DETAILS:
        log(
            f"Texture search done: Albedo={len(result.albedo)}, Normal={len(result.normal)}, Metallic={len(result.metallic)}, "
            f"Roughness={len(result.roughness)}, Smoothness={len(result.smoothness)}, Unknown={len(result.unknown)}", "info")
        # Prints info.
    return result
