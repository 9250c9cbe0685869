
""" Per-model processing state, persisted as a tag in the model's import settings. """

from typing import Dict, FrozenSet, Optional

from backend.io_backend import AssetHost
from backend.texture_classes import CyclePath, ProcessingState

from settings import STATE_TAG_PREFIX, SHOW_DETAILS
from utils import log


# Unprocessed --full--> InitialBound --update--> Bound
#                            |                    ^
#                            +--> UpdateOnly -----+   (in-place touch-ups, no full reimport)
# force: any state --> Unprocessed

ALLOWED_TRANSITIONS: Dict[ProcessingState, FrozenSet[ProcessingState]] = {
    ProcessingState.UNPROCESSED: frozenset({ProcessingState.INITIAL_BOUND}),
    ProcessingState.INITIAL_BOUND: frozenset({ProcessingState.UPDATE_ONLY, ProcessingState.BOUND}),
    ProcessingState.UPDATE_ONLY: frozenset({ProcessingState.BOUND}),
    ProcessingState.BOUND: frozenset({ProcessingState.UPDATE_ONLY, ProcessingState.BOUND}),
}


class InvalidTransitionError(RuntimeError):
    pass


def encode_tag(state: ProcessingState, prefix: str = STATE_TAG_PREFIX) -> str:
    return f"{prefix}{state.value}"


def decode_tag(tag: Optional[str], prefix: str = STATE_TAG_PREFIX) -> ProcessingState:
# Anything not written by this importer (empty, foreign data, stale values) reads as Unprocessed.

    tag = (tag or "").strip()
    if not tag.startswith(prefix):
        return ProcessingState.UNPROCESSED
    try:
        return ProcessingState(tag[len(prefix):])
    except ValueError:
        return ProcessingState.UNPROCESSED


class ImportStateMachine:
# Reads and writes the processing state of model assets; the only writer of the tag.
# The tag is read before any mutation: Unprocessed runs the full binding path with exactly one full reimport,
# every other state runs the lightweight update path.

    def __init__(self, host: AssetHost, tag_prefix: str = STATE_TAG_PREFIX):
        self.host = host
        self.tag_prefix: str = tag_prefix


    def read(self, model_path: str) -> ProcessingState:
        return decode_tag(self.host.get_import_record(model_path).user_data, self.tag_prefix)


    @staticmethod
    def select_path(state: ProcessingState) -> CyclePath:
        return CyclePath.FULL if state is ProcessingState.UNPROCESSED else CyclePath.UPDATE


    def transition(self, model_path: str, target: ProcessingState) -> ProcessingState:
    # Writes the target state after checking the transition is allowed.

        current: ProcessingState = self.read(model_path)
        if target not in ALLOWED_TRANSITIONS.get(current, frozenset()):
            raise InvalidTransitionError(f"{current.value} -> {target.value} is not allowed for '{model_path}'")
        self._write(model_path, target)
        return target


    def force(self, model_path: str) -> ProcessingState:
    # Manual reprocess: resets to Unprocessed so the next cycle replays the full path.
        self._write(model_path, ProcessingState.UNPROCESSED)
        return ProcessingState.UNPROCESSED


    def mark_initial_bound(self, model_path: str) -> ProcessingState:
        return self.transition(model_path, ProcessingState.INITIAL_BOUND)


    def begin_update(self, model_path: str) -> ProcessingState:
        if self.read(model_path) is ProcessingState.UPDATE_ONLY:
            return ProcessingState.UPDATE_ONLY
        # An interrupted update is resumed as it is.
        return self.transition(model_path, ProcessingState.UPDATE_ONLY)


    def mark_bound(self, model_path: str) -> ProcessingState:
        return self.transition(model_path, ProcessingState.BOUND)


    def rollback(self, model_path: str) -> ProcessingState:
    # Used when a full-path commit fails after the tag was written; the next import retries from scratch.
        self._write(model_path, ProcessingState.UNPROCESSED)
        return ProcessingState.UNPROCESSED


    def _write(self, model_path: str, state: ProcessingState) -> None:
        self.host.set_user_tag(model_path, encode_tag(state, self.tag_prefix))
        if SHOW_DETAILS:
            log(f"State: {state.value} ({model_path})", "info")
