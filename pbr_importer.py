
""" Binds PBR texture sets to the materials of imported models, without re-entrant reimport loops. """

import argparse
import os
import sys
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from backend.io_backend import AssetHost, FileSystemHost, HostError
from backend.texture_classes import (Assignment, CyclePath, ProcessingState, ProcessResult, SourceImage,
                                     TextureRole, KeywordTable)

from channel_packer import (load_readable_source, pack_channels, packed_texture_path,
                            persist_packed_texture, prepare_normal_map)
from deferred_scheduler import DeferredScheduler
from import_state import ImportStateMachine
from material_builder import MaterialBuilder, get_material_builder
from texture_assigner import ManualIndex, ManualOverride, SelectionPolicy, parse_manual_selection, policy_from_settings, resolve
from texture_finder import find_textures

from settings import (AUTO_IMPORT_ENABLED, GENERATE_METALLIC_SMOOTHNESS, MATERIALS_FOLDER_NAME, MODEL_EXTENSIONS,
                      PACKED_TEXTURE_SUFFIX, SHADER_PIPELINE, SHOW_DETAILS, TEXTURE_FOLDER_PATTERN)
from utils import close_image_files, file_stem, log, log_exception, normalize_path, validate_safe_folder_name


ReadyCallback = Callable[[ProcessResult], None]


@dataclass
class _PendingJob:
    force: bool = False
    assignment: Optional[Assignment] = None
    callbacks: List[ReadyCallback] = field(default_factory=list)


@dataclass
class _BoundTextures:
    albedo: Optional[str] = None
    normal: Optional[str] = None
    metallic: Optional[str] = None # Packed metallic+smoothness map, or the raw metallic map when packing is off.
    metallic_rewritten: bool = False # The packed map content changed on disk during this cycle.




#                                           === Pipeline ===

class PbrImporter:
# Pipeline orchestrator. Import callbacks only enqueue work; the scheduler runs it later, when the host is idle.
# An unprocessed model gets materials created, bound through the remap table and one full reimport.
# A bound model only gets its materials updated in place and marked dirty, so its own reimport never starts another one.

    def __init__(
        self,
        host: AssetHost,
        scheduler: Optional[DeferredScheduler] = None,
        *,
        keyword_table: Optional[KeywordTable] = None,
        policy: Optional[SelectionPolicy] = None,
        pipeline: str = SHADER_PIPELINE,
        generate_packed: bool = GENERATE_METALLIC_SMOOTHNESS,
        auto_import_enabled: bool = AUTO_IMPORT_ENABLED,
        model_extensions: Sequence[str] = MODEL_EXTENSIONS,
        texture_folder_pattern: str = TEXTURE_FOLDER_PATTERN,
        materials_folder_name: str = MATERIALS_FOLDER_NAME,
        packed_suffix: str = PACKED_TEXTURE_SUFFIX,
    ):
        self.host = host
        self.scheduler: DeferredScheduler = scheduler or DeferredScheduler(host.is_busy)
        self.state_machine = ImportStateMachine(host)
        self.keyword_table: Optional[KeywordTable] = keyword_table
        self.policy: SelectionPolicy = policy or policy_from_settings()
        self.pipeline: str = pipeline
        self.generate_packed: bool = generate_packed
        self.auto_import_enabled: bool = auto_import_enabled
        self.model_extensions: Tuple[str, ...] = tuple(extension.lower() for extension in model_extensions)
        self.texture_folder_pattern: str = texture_folder_pattern
        self.materials_folder_name: str = materials_folder_name
        self.packed_suffix: str = packed_suffix
        self._pending: Dict[str, _PendingJob] = {}
        self._manual_assignments: Dict[str, Assignment] = {} # Kept so the follow-up update passes bind the same manual selection.


    def register(self) -> None:
    # Subscribes to the host's import notifications.
        add_listener = getattr(self.host, "add_import_listener", None)
        if callable(add_listener):
            add_listener(self.on_model_imported)


# Entry points:
    def on_model_imported(self, model_path: str) -> None:
    # Host import callback. Only enqueues; never touches the asset database here.

        if not self.auto_import_enabled:
            return
        if not model_path.lower().endswith(self.model_extensions):
            return
        self.enqueue(model_path)


    def enqueue(self, model_path: str, on_ready: Optional[ReadyCallback] = None, *, force: bool = False, assignment: Optional[Assignment] = None) -> bool:
    # Queues a processing cycle; returns False if the model was already queued (the request joins that job).

        key: str = normalize_path(model_path)
        job: Optional[_PendingJob] = self._pending.get(key)
        if job is not None:
            job.force = job.force or force
            if assignment is not None:
                job.assignment = assignment
            if on_ready is not None:
                job.callbacks.append(on_ready)
            return False

        self._pending[key] = _PendingJob(force=force, assignment=assignment, callbacks=[on_ready] if on_ready else [])
        self.scheduler.enqueue(lambda: self._run_job(key), label=key)
        return True


    def reprocess(self, model_path: str, on_ready: Optional[ReadyCallback] = None) -> bool:
    # Manual reprocess: the state reads Unprocessed right away and the next tick replays the full path.

        if not self.host.asset_exists(model_path):
            log(f"Model not found: {model_path}", "error")
            return False
        self._manual_assignments.pop(normalize_path(model_path), None)
        self.state_machine.force(model_path)
        self.enqueue(model_path, on_ready, force=True)
        return True


    def resolve_manually(self, folder: str, indices: Mapping[TextureRole, ManualIndex], exclude: Sequence[str] = ()) -> Assignment:
    # Classifies a folder and applies explicit per-role selections on top of the automatic result.
        search_result = find_textures(self.host, folder, self.keyword_table, self.packed_suffix, exclude)
        return resolve(search_result, ManualOverride(dict(indices)))


    def apply_assignment(self, model_path: str, assignment: Assignment, on_ready: Optional[ReadyCallback] = None) -> bool:
    # Rebinds the model with a manual assignment through the full path.
        self._manual_assignments[normalize_path(model_path)] = assignment
        return self.enqueue(model_path, on_ready, force=True, assignment=assignment)


    def texture_folder(self, model_path: str) -> str:
        directory: str = os.path.dirname(model_path)
        return normalize_path(os.path.join(directory, self.texture_folder_pattern.format(model_name=file_stem(model_path))))


    def materials_folder(self, model_path: str) -> str:
        return normalize_path(os.path.join(os.path.dirname(model_path), self.materials_folder_name))


    def packed_texture_target(self, model_path: str) -> str:
    # Where the generated metallic+smoothness map of a model is written.
        return packed_texture_path(self.texture_folder(model_path), file_stem(model_path), self.packed_suffix)


    def _run_job(self, key: str) -> None:
        job: _PendingJob = self._pending.pop(key, None) or _PendingJob()
        result: ProcessResult = self.process(key, force=job.force, assignment=job.assignment)
        for callback in job.callbacks:
            callback(result)


# Processing cycle:
    def process(self, model_path: str, force: bool = False, assignment: Optional[Assignment] = None) -> ProcessResult:
    # Runs one mutation cycle for a model. Configuration and binding errors abort this model only, without a state change.

        result = ProcessResult(model_path=model_path)

        if not self.host.asset_exists(model_path):
            log(f"Skipped: model no longer exists: {model_path}", "skip")
            result.aborted = "model missing"
            return result

        if force:
            self.state_machine.force(model_path)

        state: ProcessingState = self.state_machine.read(model_path)
        result.state_before = result.state_after = state
        cycle_path: CyclePath = self.state_machine.select_path(state)


# Validating the configuration:
        builder: Optional[MaterialBuilder] = get_material_builder(self.pipeline)
        if builder is None:
            result.aborted = "unknown shader pipeline"
            return result

        if not self.host.has_shader(builder.get_shader_identifier()):
            log(f"Aborted '{os.path.basename(model_path)}': shader '{builder.shader}' is not available.", "error")
            result.aborted = "shader unavailable"
            return result

        if not validate_safe_folder_name(self.materials_folder_name):
            result.aborted = "invalid materials folder name"
            return result

        texture_folder: str = self.texture_folder(model_path)
        if not self.host.folder_exists(texture_folder):
            log(f"Skipped '{os.path.basename(model_path)}': texture folder missing: {texture_folder}", "warn")
            result.aborted = "texture folder missing"
            return result


# Resolving and preparing textures:
        if assignment is None:
            assignment = self._manual_assignments.get(normalize_path(model_path))
        if assignment is None:
            search_result = find_textures(self.host, texture_folder, self.keyword_table, self.packed_suffix, [self.packed_texture_target(model_path)])
            assignment = resolve(search_result, self.policy)
        assignment.freeze()

        unresolved: List[TextureRole] = assignment.unresolved()
        if unresolved and SHOW_DETAILS:
            log(f"Unresolved roles (manual selection needed): {', '.join(role.value for role in unresolved)}", "info")

        textures: _BoundTextures = self._prepare_textures(model_path, texture_folder, assignment)
        result.packed_texture = textures.metallic


# Binding:
        if cycle_path is CyclePath.FULL:
            self._run_full_path(model_path, builder, textures, result)
        else:
            self._run_update_path(model_path, builder, textures, state, result)
        return result


    def _prepare_textures(self, model_path: str, texture_folder: str, assignment: Assignment) -> _BoundTextures:
    # Flips import settings where needed and builds the packed metallic+smoothness map.

        albedo = assignment.get(TextureRole.ALBEDO)
        normal = assignment.get(TextureRole.NORMAL)
        prepare_normal_map(self.host, normal)

        textures = _BoundTextures(
            albedo=albedo.path if albedo else None,
            normal=normal.path if normal else None,
        )

        if not self.generate_packed:
            metallic = assignment.get(TextureRole.METALLIC)
            textures.metallic = metallic.path if metallic else None
            return textures
        # Binds the metallic map as it is.

        sources: List[Optional[SourceImage]] = [
            load_readable_source(self.host, assignment.get(role))
            for role in (TextureRole.METALLIC, TextureRole.ROUGHNESS, TextureRole.SMOOTHNESS)
        ]
        try:
            packed = pack_channels(*sources)
            if packed is None:
                return textures
            # Nothing to pack: a previously bound packed map gets cleared.

            handle, rewritten = persist_packed_texture(self.host, packed, self.packed_texture_target(model_path))
            textures.metallic = handle.path
            textures.metallic_rewritten = rewritten
        finally:
            close_image_files([source.image for source in sources if source is not None])
        return textures


    def _run_full_path(self, model_path: str, builder: MaterialBuilder, textures: _BoundTextures, result: ProcessResult) -> None:
    # Creates one external material per internal material, binds them, writes InitialBound and triggers one full reimport.

        materials_folder: str = self.materials_folder(model_path)
        remap: Dict[str, str] = dict(self.host.get_import_record(model_path).remap)

        for internal_name in self.host.list_internal_materials(model_path):
            material = builder.create_material(self.host, materials_folder, internal_name)
            if material is None:
                result.aborted = "material creation failed"
                return

            material_path: str = builder.material_path(materials_folder, internal_name)
            if builder.apply_textures(material, textures.albedo, textures.normal, textures.metallic):
                self.host.write_material(material_path, material)
                result.changed_materials.append(material_path)
            remap[internal_name] = material_path

        try:
            self.host.set_remap(model_path, remap)
        except HostError as error:
            log_exception(f"Binding failed for '{os.path.basename(model_path)}'", error)
            result.aborted = "binding failed"
            return
        # State stays Unprocessed; the next import event retries the full path.

        result.state_after = self.state_machine.mark_initial_bound(model_path)
        # Written before the reimport, so the re-entered import sees a bound model.

        try:
            self.host.commit(model_path, full_reimport=True)
        except (HostError, OSError) as error:
            log_exception(f"Reimport failed for '{os.path.basename(model_path)}'", error)
            result.state_after = self.state_machine.rollback(model_path)
            result.aborted = "reimport failed"
            return

        result.path = CyclePath.FULL
        result.full_reimport = True
        log(f"Bound {len(remap)} material(s): {os.path.basename(model_path)}", "complete")
        # Prints completed.


    def _run_update_path(self, model_path: str, builder: MaterialBuilder, textures: _BoundTextures, state: ProcessingState, result: ProcessResult) -> None:
    # Keeps the existing bindings; materials whose textures changed are updated in place and marked dirty.

        remap: Dict[str, str] = self.host.get_import_record(model_path).remap
        if not remap:
            log(f"'{os.path.basename(model_path)}' is {state.value} but has no bound materials. Run reprocess to rebind.", "warn")

        try:
            for internal_name, material_path in remap.items():
                material = self.host.load_material(material_path)
                if material is None:
                    log(f"Bound material for '{internal_name}' is missing: {material_path}", "warn")
                    continue

                slots_changed: bool = builder.apply_textures(material, textures.albedo, textures.normal, textures.metallic)
                packed_changed: bool = textures.metallic_rewritten and material.textures.get(builder.metallic_slot) == textures.metallic
                if not (slots_changed or packed_changed):
                    continue

                if state is not ProcessingState.UPDATE_ONLY:
                    state = self.state_machine.begin_update(model_path)
                self.host.write_material(material_path, material)
                self.host.commit(material_path, full_reimport=False)
                result.changed_materials.append(material_path)
        except (HostError, OSError) as error:
            log_exception(f"Update failed for '{os.path.basename(model_path)}'", error)
            result.state_after = self.state_machine.read(model_path)
            result.aborted = "update failed"
            return

        if state is not ProcessingState.BOUND:
            state = self.state_machine.mark_bound(model_path)
        result.state_after = state
        result.path = CyclePath.UPDATE

        if result.changed_materials:
            log(f"Updated {len(result.changed_materials)} material(s): {os.path.basename(model_path)}", "complete")
            # Prints completed.




#                                         === CLI entry point ===

def _parse_selection(raw_items: Sequence[str]) -> Dict[str, ManualIndex]:
# "metallic=1" > {"metallic": "1"}
    selection: Dict[str, ManualIndex] = {}
    for item in raw_items:
        role_name, separator, index = item.partition("=")
        if not separator:
            log(f"Ignoring selection '{item}', expected ROLE=INDEX.", "warn")
            continue
        selection[role_name.strip()] = index.strip()
    return selection


def _report(result: ProcessResult) -> None:
    name: str = os.path.basename(result.model_path)
    if result.aborted:
        log(f"{name}: {result.aborted}", "skip")
    elif result.path is not None:
        log(f"{name}: {result.path.value} cycle, {result.state_before.value} > {result.state_after.value}", "info")


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="pbr-importer", description="Binds PBR texture sets to model materials.")
    parser.add_argument("models", nargs="+", help="Model files (e.g., .fbx) to import.")
    parser.add_argument("--root", default=".", help="Asset root folder; model paths are relative to it.")
    parser.add_argument("--force", action="store_true", help="Reprocess models that were already bound.")
    parser.add_argument("--select", action="append", default=[], metavar="ROLE=INDEX", help="Manual texture selection; index into the candidate list, -1 or None clears.")
    parser.add_argument("--max-ticks", type=int, default=100, help="Idle ticks before giving up on the queue.")
    parser.add_argument("--readable", action="store_true", help="Treat textures without metadata as readable.")
    args = parser.parse_args(argv)

    host = FileSystemHost(args.root, default_readable=args.readable)
    importer = PbrImporter(host)
    importer.register()
    selection = parse_manual_selection(_parse_selection(args.select))

    queued_any: bool = False
    for model_path in args.models:
        if not host.asset_exists(model_path):
            log(f"Model not found: {model_path}", "error")
            continue
        absolute_path: str = host.resolve(model_path)

        if selection:
            assignment = importer.resolve_manually(importer.texture_folder(absolute_path), selection, [importer.packed_texture_target(absolute_path)])
            queued_any = importer.apply_assignment(absolute_path, assignment, on_ready=_report) or queued_any
        elif args.force:
            queued_any = importer.reprocess(absolute_path, on_ready=_report) or queued_any
        else:
            host.import_model(absolute_path)
            importer.enqueue(absolute_path, on_ready=_report)
            # Joins the job queued by the import callback, or queues one if auto import is off.
            queued_any = True

    if not queued_any:
        log("Aborted: No valid model provided.", "error")
        return 1

    importer.scheduler.run_until_idle(args.max_ticks)
    log("", "info")  # Visual separator
    log("All processing done.", "complete")
    return 0


if __name__ == "__main__":
    sys.exit(main())
