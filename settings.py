
""" PBR Importer settings. """

import json
import os
from typing import Dict, List, Tuple

from backend.texture_classes import KeywordTable, TextureRole


def _as_bool(v) -> bool:
# Converts .json input (bool/int/str/None) to a real bool;
# Avoids the case where a non-empty string like "False" is treated as True.

    if isinstance(v, bool): return v
    if isinstance(v, str):
        input_str = v.strip().lower()
        if input_str == "": return False
        return input_str in ("1","true","yes","on")
    return bool(v)


def _as_keyword_table(raw: Dict[str, List[str]]) -> KeywordTable:
# Converts {"Albedo": [...]} from .json into an ordered {TextureRole: [...]} table; unknown role names are ignored.

    table: KeywordTable = {}
    for role_name, keywords in raw.items():
        try:
            role = TextureRole(role_name)
        except ValueError:
            continue
        if role is TextureRole.UNKNOWN:
            continue
        table[role] = [str(keyword).strip().lower() for keyword in (keywords or []) if str(keyword).strip()]
    return table



#                                           === Constants ===

ALLOWED_FILE_TYPES: Tuple[str, ...] = ("png", "jpg", "jpeg", "tga")

DEFAULT_KEYWORDS: Dict[str, List[str]] = {
    "Albedo": ["albedo", "basecolor", "diff", "color"],
    "Normal": ["normal", "nrm", "_nor"],
    "Metallic": ["metal", "metallic"],
    "Roughness": ["rough", "roughness", "_rgh"],
    "Smoothness": ["smooth", "gloss"]}
# Role order matters: the first role whose keyword is found in the file name wins.

COMBINED_MAP_TOKENS: Tuple[Tuple[str, ...], Tuple[str, ...]] = (("metal",), ("smooth", "gloss"))
# A name containing a token from both groups is treated as an already packed metallic+smoothness map.

STATE_TAG_PREFIX: str = "pbr_importer:" # Prefix of the processing-state tag stored in the model's import settings.



#                                           === Loading JSON file ===

_config_path = os.path.join(os.path.dirname(__file__), "config.json")
_config_data: dict = {}
if os.path.isfile(_config_path):
    with open(_config_path, "r", encoding="utf-8") as f:
        _config_data = json.load(f)


# Assigning config values:
AUTO_IMPORT_ENABLED: bool = _as_bool(_config_data.get("AUTO_IMPORT_ENABLED", True)) # If false, model import events are ignored; manual reprocessing still works.
SHADER_PIPELINE: str = str(_config_data.get("SHADER_PIPELINE", "Standard")).strip() # Material builder used for created materials: "Standard", "URP" or "HDRP".
GENERATE_METALLIC_SMOOTHNESS: bool = _as_bool(_config_data.get("GENERATE_METALLIC_SMOOTHNESS", True)) # If false, binds the metallic map as-is instead of generating a packed map.
SELECTION_POLICY: str = str(_config_data.get("SELECTION_POLICY", "auto_single")).strip().lower() # "auto_single" selects only sole candidates, "priority" picks PRIORITIES indices among several.
KEYWORDS: KeywordTable = _as_keyword_table(_config_data.get("KEYWORDS", DEFAULT_KEYWORDS)) # File name keywords per texture role.
PRIORITIES: Dict[TextureRole, int] = {TextureRole(k): int(v) for k, v in _config_data.get("PRIORITIES", {}).items() if k in {role.value for role in TextureRole}} # Candidate index used by the "priority" policy.
MODEL_EXTENSIONS: Tuple[str, ...] = tuple(e.lower() for e in _config_data.get("MODEL_EXTENSIONS", [".fbx"])) # Model files handled by the import callback.
TEXTURE_FOLDER_PATTERN: str = _config_data.get("TEXTURE_FOLDER_PATTERN", "{model_name}.fbm") # Folder next to the model that holds its textures.
MATERIALS_FOLDER_NAME: str = _config_data.get("MATERIALS_FOLDER_NAME", "Materials").strip() # Folder next to the model where external materials are created.
PACKED_TEXTURE_SUFFIX: str = _config_data.get("PACKED_TEXTURE_SUFFIX", "packed").strip() # Suffix of generated metallic+smoothness maps; such files are skipped when scanning.

SHOW_DETAILS: bool = _as_bool(_config_data.get("SHOW_DETAILS", False)) # Shows details like tracebacks and per-file info when printing logs.
