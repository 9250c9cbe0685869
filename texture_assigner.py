
""" Resolves classified texture candidates into one texture per role. """

from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Union

from backend.texture_classes import ASSIGNABLE_ROLES, Assignment, TextureHandle, TextureRole, TextureSearchResult

from settings import PRIORITIES, SELECTION_POLICY
from utils import log


NO_SELECTION: int = -1 # Manual index meaning "explicitly none".

ManualIndex = Union[int, str, None]


#                                              === Policies ===

@dataclass(frozen=True)
class AutoSingle:
    pass
# Selects a role only if it has exactly one candidate.


@dataclass(frozen=True)
class PriorityIndex:
    indices: Mapping[TextureRole, int] = field(default_factory=dict) # Missing roles use index 0.
# Picks the configured candidate index among several; out-of-range indices fall back to the first candidate.


@dataclass(frozen=True)
class ManualOverride:
    indices: Mapping[TextureRole, ManualIndex] = field(default_factory=dict)
# Explicit per-role index into the unioned candidate list; -1, None or "None" clears the role.
# Roles not listed keep the AutoSingle result.


SelectionPolicy = Union[AutoSingle, PriorityIndex, ManualOverride]




def policy_from_settings(policy_name: str = SELECTION_POLICY, priorities: Optional[Dict[TextureRole, int]] = None) -> SelectionPolicy:
# Builds the automatic policy named in config.

    name: str = (policy_name or "").strip().lower()
    if name in ("priority", "priority_index"):
        return PriorityIndex(dict(PRIORITIES if priorities is None else priorities))
    if name not in ("", "auto", "auto_single"):
        log(f"Unknown SELECTION_POLICY '{policy_name}'. Defaulting to 'auto_single'.", "warn")
    return AutoSingle()


def resolve(search_result: TextureSearchResult, policy: Optional[SelectionPolicy] = None) -> Assignment:
# Produces a new Assignment; the search result is never modified.

    policy = policy or AutoSingle()
    assignment = Assignment(all_textures=search_result.all_textures())

    if isinstance(policy, PriorityIndex):
        for role in ASSIGNABLE_ROLES:
            assignment.select(role, _pick_by_priority(search_result.candidates(role), policy.indices.get(role, 0)))
        return assignment

    for role in ASSIGNABLE_ROLES:
        assignment.select(role, _pick_single(search_result.candidates(role)))

    if isinstance(policy, ManualOverride):
        _apply_manual_indices(assignment, policy.indices)
    return assignment


def _pick_single(candidates: list) -> Optional[TextureHandle]:
    return candidates[0] if len(candidates) == 1 else None


def _pick_by_priority(candidates: list, index: int) -> Optional[TextureHandle]:
    if not candidates:
        return None
    if isinstance(index, int) and 0 <= index < len(candidates):
        return candidates[index]
    return candidates[0]


def _is_none_selection(index: ManualIndex) -> bool:
    if index is None:
        return True
    if isinstance(index, str):
        return index.strip().lower() in ("none", str(NO_SELECTION))
    return index == NO_SELECTION


def _apply_manual_indices(assignment: Assignment, indices: Mapping[TextureRole, ManualIndex]) -> None:
# Applies explicit selections on top of the automatic result.

    all_textures = assignment.all_textures
    for role, index in indices.items():
        if role not in ASSIGNABLE_ROLES:
            continue
        if _is_none_selection(index):
            assignment.clear(role)
            continue

        try:
            position = int(index)
        except (TypeError, ValueError):
            log(f"Invalid manual selection for {role.value}: '{index}' - keeping the automatic result.", "warn")
            continue

        if 0 <= position < len(all_textures):
            assignment.select(role, all_textures[position])
        else:
            log(f"Manual selection for {role.value} out of range ({position}) - keeping the automatic result.", "warn")
            # Prints warning.


def manual_indices_for(assignment: Assignment) -> Dict[TextureRole, int]:
# Current selection of every role as indices into the unioned candidate list, -1 if unselected.
# Used to pre-fill manual selection.

    indices: Dict[TextureRole, int] = {}
    for role in ASSIGNABLE_ROLES:
        texture = assignment.get(role)
        indices[role] = assignment.all_textures.index(texture) if texture in assignment.all_textures else NO_SELECTION
    return indices


def parse_manual_selection(raw_selection: Mapping[str, ManualIndex]) -> Dict[TextureRole, ManualIndex]:
# Converts {"metallic": 1, "roughness": "None"} (e.g., from the CLI) to role keys; unknown roles are skipped.

    roles_by_name: Dict[str, TextureRole] = {role.value.lower(): role for role in ASSIGNABLE_ROLES}
    selection: Dict[TextureRole, ManualIndex] = {}
    for role_name, index in raw_selection.items():
        role = roles_by_name.get(str(role_name).strip().lower())
        if role is None:
            log(f"Unknown texture role '{role_name}' in manual selection - skipping.", "warn")
            continue
        if isinstance(index, str) and index.strip().lstrip("-").isdigit():
            index = int(index)
        selection[role] = index
    return selection
