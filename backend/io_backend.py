
""" Host backend: the asset database the importer works against. """
#  The pipeline only talks to the AssetHost interface; FileSystemHost implements it over a plain folder tree with .json sidecars.

import json
import os
from contextlib import contextmanager
from dataclasses import asdict
from typing import Callable, Dict, Iterator, List, Optional, Protocol, Tuple

from backend.image_lib import ImageObject, open_image, save_image as save_image_file
from backend.texture_classes import ImportRecord, MaterialAsset, TextureFlags

from settings import ALLOWED_FILE_TYPES
from utils import file_stem, log, normalize_path


TEXTURE_META_SUFFIX: str = ".meta.json" # Texture import metadata, e.g., "wood_normal.png.meta.json".
IMPORT_SETTINGS_SUFFIX: str = ".import.json" # Model import settings, e.g., "chair.fbx.import.json".
MATERIAL_EXTENSION: str = ".mat.json"

ImportListener = Callable[[str], None]


class HostError(RuntimeError):
    pass

class TextureNotReadableError(HostError):
    pass

class RemapRejectedError(HostError):
    pass




#                                     === Host interface ===

class AssetHost(Protocol):

    def resolve(self, path: str) -> str: ...
    def is_busy(self) -> bool: ...
    def folder_exists(self, path: str) -> bool: ...
    def create_folder(self, path: str) -> None: ...
    def list_images(self, folder: str) -> List[str]: ...
    def asset_exists(self, path: str) -> bool: ...

    def get_texture_flags(self, path: str) -> TextureFlags: ...
    def set_texture_flags(self, path: str, **flags: bool) -> bool: ...
    def load_image(self, path: str) -> ImageObject: ...
    def write_image(self, image: ImageObject, path: str, flags: Optional[TextureFlags] = None) -> str: ...

    def has_shader(self, shader: str) -> bool: ...
    def load_material(self, path: str) -> Optional[MaterialAsset]: ...
    def write_material(self, path: str, material: MaterialAsset) -> str: ...

    def list_internal_materials(self, model_path: str) -> List[str]: ...
    def get_import_record(self, model_path: str) -> ImportRecord: ...
    def set_user_tag(self, model_path: str, tag: str) -> None: ...
    def set_remap(self, model_path: str, remap: Dict[str, str]) -> None: ...
    def commit(self, path: str, full_reimport: bool) -> None: ...




#                                     === File system host ===

class FileSystemHost:
# Asset database backed by a directory tree; import metadata, model import settings and materials are .json sidecars.
# A full reimport of a model runs inside a busy transaction and notifies every import listener,
# the way an editor re-enters its post-processors.

    def __init__(self, root: str, *, default_readable: bool = False, shaders: Optional[List[str]] = None):
        self.root: str = normalize_path(os.path.abspath(root))
        self.default_readable: bool = default_readable
        self.shaders: Optional[List[str]] = shaders # None means every shader is available.
        self.import_listeners: List[ImportListener] = []
        self.commit_log: List[Tuple[str, bool]] = [] # (path, full_reimport) for every commit.
        self.dirty_assets: List[str] = []
        self._transaction_depth: int = 0


    def add_import_listener(self, listener: ImportListener) -> None:
        self.import_listeners.append(listener)


    def resolve(self, path: str) -> str:
    # Host paths are relative to root; absolute paths are accepted as they are.
        if os.path.isabs(path):
            return normalize_path(path)
        return normalize_path(os.path.join(self.root, path))


    @contextmanager
    def asset_transaction(self) -> Iterator[None]:
    # Marks the host as busy while it mutates its asset index.
        self._transaction_depth += 1
        try:
            yield
        finally:
            self._transaction_depth -= 1


    def is_busy(self) -> bool:
        return self._transaction_depth > 0


# Folders and listing:
    def folder_exists(self, path: str) -> bool:
        return os.path.isdir(self.resolve(path))


    def create_folder(self, path: str) -> None:
        os.makedirs(self.resolve(path), exist_ok=True)


    def list_images(self, folder: str) -> List[str]:
    # Lists image files in the folder, sorted by name so repeated scans return the same order.

        absolute_folder = self.resolve(folder)
        if not os.path.isdir(absolute_folder):
            return []
        image_paths: List[str] = []
        for filename in sorted(os.listdir(absolute_folder)):
            extension = os.path.splitext(filename)[1].lower().lstrip(".")
            if extension not in ALLOWED_FILE_TYPES:
                continue
            absolute_path = os.path.join(absolute_folder, filename)
            if os.path.isfile(absolute_path):
                image_paths.append(normalize_path(absolute_path))
        return image_paths


    def asset_exists(self, path: str) -> bool:
        return os.path.isfile(self.resolve(path))


# Textures:
    def get_texture_flags(self, path: str) -> TextureFlags:
        meta_path = self.resolve(path) + TEXTURE_META_SUFFIX
        data = self._read_json(meta_path)
        return TextureFlags(
            readable=bool(data.get("readable", self.default_readable)),
            normal_map=bool(data.get("normal_map", False)),
            srgb=bool(data.get("srgb", True)),
        )


    def set_texture_flags(self, path: str, **flags: bool) -> bool:
    # Changes import metadata of a texture; returns True if anything changed (which means a texture reimport).

        if not self.asset_exists(path):
            raise HostError(f"Texture not found: {path}")
        current = self.get_texture_flags(path)
        updated = TextureFlags(**{**asdict(current), **flags})
        if updated == current:
            return False
        with self.asset_transaction():
            self._write_json(self.resolve(path) + TEXTURE_META_SUFFIX, asdict(updated))
        return True


    def load_image(self, path: str) -> ImageObject:
        if not self.get_texture_flags(path).readable:
            raise TextureNotReadableError(f"Texture pixels are not readable: {path}")
        return open_image(self.resolve(path))


    def write_image(self, image: ImageObject, path: str, flags: Optional[TextureFlags] = None) -> str:
        absolute_path = self.resolve(path)
        os.makedirs(os.path.dirname(absolute_path), exist_ok=True)
        with self.asset_transaction():
            save_image_file(image, absolute_path)
            if flags is not None:
                self._write_json(absolute_path + TEXTURE_META_SUFFIX, asdict(flags))
        return absolute_path


# Materials:
    def has_shader(self, shader: str) -> bool:
        return self.shaders is None or shader in self.shaders


    def load_material(self, path: str) -> Optional[MaterialAsset]:
        absolute_path = self.resolve(path)
        if not os.path.isfile(absolute_path):
            return None
        data = self._read_json(absolute_path)
        return MaterialAsset(
            name=data.get("name", ""),
            shader=data.get("shader", ""),
            textures=dict(data.get("textures", {})),
            keywords=list(data.get("keywords", [])),
        )


    def write_material(self, path: str, material: MaterialAsset) -> str:
        absolute_path = self.resolve(path)
        os.makedirs(os.path.dirname(absolute_path), exist_ok=True)
        with self.asset_transaction():
            self._write_json(absolute_path, asdict(material))
        return absolute_path


# Model import settings:
    def list_internal_materials(self, model_path: str) -> List[str]:
    # Names of the materials embedded in the model; a model without declared materials has one named after the file.

        data = self._read_json(self.resolve(model_path) + IMPORT_SETTINGS_SUFFIX)
        names = [str(name) for name in data.get("materials", []) if str(name).strip()]
        return names or [file_stem(model_path)]


    def get_import_record(self, model_path: str) -> ImportRecord:
        data = self._read_json(self.resolve(model_path) + IMPORT_SETTINGS_SUFFIX)
        return ImportRecord(user_data=str(data.get("user_data", "")), remap=dict(data.get("remap", {})))


    def set_user_tag(self, model_path: str, tag: str) -> None:
        self._update_import_settings(model_path, user_data=tag)


    def set_remap(self, model_path: str, remap: Dict[str, str]) -> None:
        for internal_name, target_path in remap.items():
            if not os.path.isfile(self.resolve(target_path)):
                raise RemapRejectedError(f"Remap target for '{internal_name}' does not exist: {target_path}")
        self._update_import_settings(model_path, remap=dict(remap))


    def commit(self, path: str, full_reimport: bool) -> None:
    # Full reimport re-enters every import listener; otherwise the asset is only marked dirty.

        absolute_path = self.resolve(path)
        self.commit_log.append((absolute_path, full_reimport))
        if not full_reimport:
            if absolute_path not in self.dirty_assets:
                self.dirty_assets.append(absolute_path)
            return

        with self.asset_transaction():
            for listener in list(self.import_listeners):
                listener(absolute_path)


    def import_model(self, path: str) -> None:
    # Simulates the editor importing a model: runs every import listener inside a busy transaction.
        if not self.asset_exists(path):
            log(f"Model not found: {path}", "error")
            return
        with self.asset_transaction():
            for listener in list(self.import_listeners):
                listener(self.resolve(path))


# Sidecars:
    def _update_import_settings(self, model_path: str, **values) -> None:
        settings_path = self.resolve(model_path) + IMPORT_SETTINGS_SUFFIX
        data = self._read_json(settings_path)
        data.update(values)
        self._write_json(settings_path, data)


    @staticmethod
    def _read_json(path: str) -> dict:
        if not os.path.isfile(path):
            return {}
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as error:
            log(f"Cannot read '{path}': {error}", "warn")
            return {}
        return data if isinstance(data, dict) else {}


    @staticmethod
    def _write_json(path: str, data: dict) -> None:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=4, sort_keys=True)
