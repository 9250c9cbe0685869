
""" Material builders: create or reuse external materials for one shader family. """

import os
from dataclasses import dataclass
from typing import Dict, Optional

from backend.io_backend import AssetHost, MATERIAL_EXTENSION
from backend.texture_classes import MaterialAsset

from settings import SHADER_PIPELINE
from utils import log, normalize_path, sanitize_asset_name


@dataclass(frozen=True)
class MaterialBuilder:
    pipeline: str # Config name, e.g., "Standard".
    shader: str # Shader identifier looked up in the host.
    albedo_slot: str
    normal_slot: str
    metallic_slot: str
    metallic_keyword: str = "" # Shader keyword enabled while a metallic map is bound.
    name_suffix: str = "_mat"


    def get_shader_identifier(self) -> str:
        return self.shader


    def build_name(self, base_name: Optional[str]) -> str:
    # E.g., "StarSparrow" > "StarSparrow_mat"
        base_name = (base_name or "").strip()
        return f"{base_name}{self.name_suffix}" if base_name else f"Unnamed{self.name_suffix}"


    def material_path(self, materials_folder: str, base_name: Optional[str]) -> str:
        file_name: str = sanitize_asset_name(self.build_name(base_name))
        return normalize_path(os.path.join(materials_folder, f"{file_name}{MATERIAL_EXTENSION}"))


    def texture_slots(self, albedo: Optional[str], normal: Optional[str], metallic: Optional[str]) -> Dict[str, Optional[str]]:
    # Slot values for the given texture paths; None clears a slot.
        return {self.albedo_slot: albedo, self.normal_slot: normal, self.metallic_slot: metallic}


    def create_material(self, host: AssetHost, materials_folder: str, base_name: Optional[str]) -> Optional[MaterialAsset]:
    # Returns the existing material at the target path or creates a new one.
    # Returns None if the shader is missing in the host.

        if not host.has_shader(self.shader):
            log(f"Shader '{self.shader}' is not available (pipeline '{self.pipeline}').", "error")
            return None

        host.create_folder(materials_folder)
        target_path: str = self.material_path(materials_folder, base_name)
        existing: Optional[MaterialAsset] = host.load_material(target_path)
        if existing is not None:
            return existing

        material = MaterialAsset(name=self.build_name(base_name), shader=self.shader)
        host.write_material(target_path, material)
        log(f"Created material: {os.path.basename(target_path)}", "complete")
        # Prints completed.
        return material


    def apply_textures(self, material: MaterialAsset, albedo: Optional[str], normal: Optional[str], metallic: Optional[str]) -> bool:
    # Sets texture slots and the metallic keyword in place; returns True if anything changed.

        changed: bool = False
        for slot, texture_path in self.texture_slots(albedo, normal, metallic).items():
            if material.textures.get(slot) != texture_path:
                material.textures[slot] = texture_path
                changed = True

        if self.metallic_keyword:
            has_keyword: bool = self.metallic_keyword in material.keywords
            if metallic and not has_keyword:
                material.keywords.append(self.metallic_keyword)
                changed = True
            elif not metallic and has_keyword:
                material.keywords.remove(self.metallic_keyword)
                changed = True
        return changed




#                                           === Builders ===

MATERIAL_BUILDERS: Dict[str, MaterialBuilder] = {
    "standard": MaterialBuilder("Standard", "Standard", "_MainTex", "_BumpMap", "_MetallicGlossMap", "_METALLICGLOSSMAP"),
    "urp": MaterialBuilder("URP", "Universal Render Pipeline/Lit", "_BaseMap", "_BumpMap", "_MetallicGlossMap", "_METALLICSPECGLOSSMAP"),
    "hdrp": MaterialBuilder("HDRP", "HDRP/Lit", "_BaseColorMap", "_NormalMap", "_MaskMap", "_MASKMAP"),
}


def get_material_builder(pipeline: str = SHADER_PIPELINE) -> Optional[MaterialBuilder]:
# Selects the builder named in config; None for an unknown pipeline.

    builder: Optional[MaterialBuilder] = MATERIAL_BUILDERS.get((pipeline or "").strip().lower())
    if builder is None:
        supported: str = ", ".join(sorted(b.pipeline for b in MATERIAL_BUILDERS.values()))
        log(f"Unknown SHADER_PIPELINE '{pipeline}'. Supported: {supported}", "error")
    return builder
