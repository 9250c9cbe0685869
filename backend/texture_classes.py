from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Set, Tuple

from PIL.Image import Image as PILImage


class TextureRole(str, Enum):
    ALBEDO = "Albedo"
    NORMAL = "Normal"
    METALLIC = "Metallic"
    ROUGHNESS = "Roughness"
    SMOOTHNESS = "Smoothness"
    UNKNOWN = "Unknown"


ASSIGNABLE_ROLES: Tuple[TextureRole, ...] = (
    TextureRole.ALBEDO, TextureRole.NORMAL, TextureRole.METALLIC, TextureRole.ROUGHNESS, TextureRole.SMOOTHNESS)

KeywordTable = Dict[TextureRole, List[str]] # Ordered keyword lists per role, e.g., {TextureRole.ALBEDO: ["albedo", "basecolor"]}; table order is the match order.


class ProcessingState(str, Enum):
    UNPROCESSED = "unprocessed"
    INITIAL_BOUND = "initial_bound"
    UPDATE_ONLY = "update_only"
    BOUND = "bound"


class CyclePath(str, Enum):
    FULL = "full" # Binds every internal material and triggers a single full host re-import.
    UPDATE = "update" # Updates already bound materials in place and only marks them dirty.



#                                              === dataclasses ===

@dataclass(frozen=True)
class TextureHandle:
    path: str # Host path of the image asset.
    name: str # File name, e.g., "wood_metal.png".
    role: TextureRole = TextureRole.UNKNOWN # Classification result.
    readable: bool = True # Whether the host currently allows reading raw pixels.


@dataclass
class TextureSearchResult:
    albedo: List[TextureHandle] = field(default_factory=list)
    normal: List[TextureHandle] = field(default_factory=list)
    metallic: List[TextureHandle] = field(default_factory=list)
    roughness: List[TextureHandle] = field(default_factory=list)
    smoothness: List[TextureHandle] = field(default_factory=list)
    unknown: List[TextureHandle] = field(default_factory=list)
    # Lists keep the discovery order, so UI indices stay stable between scans of an unchanged folder.

    def candidates(self, role: TextureRole) -> List[TextureHandle]:
        return getattr(self, role.value.lower())

    def all_textures(self) -> List[TextureHandle]:
    # Unioned candidate list used by manual selection: albedo, normal, metallic, roughness, smoothness, then unknown.
        textures: List[TextureHandle] = []
        for role in ASSIGNABLE_ROLES + (TextureRole.UNKNOWN,):
            textures.extend(self.candidates(role))
        return textures


class AssignmentFrozenError(RuntimeError):
    pass


@dataclass
class Assignment:
    selections: Dict[TextureRole, Optional[TextureHandle]] = field(default_factory=lambda: {role: None for role in ASSIGNABLE_ROLES})
    cleared: Set[TextureRole] = field(default_factory=set) # Roles explicitly set to "None" by a manual selection.
    all_textures: List[TextureHandle] = field(default_factory=list)
    frozen: bool = False

    def get(self, role: TextureRole) -> Optional[TextureHandle]:
        return self.selections.get(role)

    def select(self, role: TextureRole, texture: Optional[TextureHandle]) -> None:
        if self.frozen:
            raise AssignmentFrozenError(f"Assignment is frozen, cannot change '{role.value}'.")
        self.selections[role] = texture
        self.cleared.discard(role)

    def clear(self, role: TextureRole) -> None:
    # Explicit "None": differs from a role that was simply never resolved.
        if self.frozen:
            raise AssignmentFrozenError(f"Assignment is frozen, cannot clear '{role.value}'.")
        self.selections[role] = None
        self.cleared.add(role)

    def freeze(self) -> "Assignment":
        self.frozen = True
        return self

    def unresolved(self) -> List[TextureRole]:
        return [role for role in ASSIGNABLE_ROLES if self.selections.get(role) is None and role not in self.cleared]


@dataclass
class SourceImage:
    name: str # File name used by the combined-map heuristic.
    image: Optional[PILImage] = None # Loaded pixels; None for a pass-through candidate that doesn't need reading.
    path: str = "" # Host path of the source asset.


@dataclass
class PackedChannelImage:
    width: int
    height: int
    image: Optional[PILImage] # RGBA: R=G=B metallic, A smoothness. None for a pass-through.
    source_names: Tuple[str, ...] = () # Names of the sources actually consumed.
    passthrough_path: str = "" # Set when an existing combined metallic+smoothness map was reused.

    @property
    def is_passthrough(self) -> bool:
        return bool(self.passthrough_path)


@dataclass
class TextureFlags:
    readable: bool = False # Raw pixel data accessible.
    normal_map: bool = False # Imported as a normal map.
    srgb: bool = True # Color data (gamma) when True, linear data when False.


@dataclass
class MaterialAsset:
    name: str
    shader: str
    textures: Dict[str, Optional[str]] = field(default_factory=dict) # Shader slot to texture path.
    keywords: List[str] = field(default_factory=list) # Enabled shader keywords.


@dataclass
class ImportRecord:
    user_data: str = "" # Opaque tag; holds the processing state.
    remap: Dict[str, str] = field(default_factory=dict) # Internal material name to external material path.


@dataclass
class DeferredTask:
    order: int # Enqueue order.
    action: Callable[[], object]
    label: str = "" # Shown in logs, usually the asset path.


@dataclass
class ProcessResult:
    model_path: str
    path: Optional[CyclePath] = None # None when the cycle was aborted or skipped.
    state_before: ProcessingState = ProcessingState.UNPROCESSED
    state_after: ProcessingState = ProcessingState.UNPROCESSED
    packed_texture: Optional[str] = None # Path of the bound metallic+smoothness map.
    changed_materials: List[str] = field(default_factory=list)
    full_reimport: bool = False
    aborted: str = "" # Reason when the cycle stopped early.
