"""Two-tier memory: short-term turn log and long-term distilled memory.

State is kept per scope. In ``shared`` mode every identity talks into the
single ``global`` scope; in ``per_user`` mode each identity owns its own
scope. Both tiers are persisted as independent JSON documents whose shape
follows the scope mode:

    history (shared)    [turn, ...]
    history (per_user)  {identity_id: [turn, ...]}
    memory (shared)     {"summaries": [...], "facts": [...], "identities": {...}}
    memory (per_user)   {identity_id: {"summaries": ..., "facts": ..., "identities": ...}}
"""

import json
import shutil
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Literal, TypeVar

from loguru import logger
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    ValidationInfo,
    model_validator,
)

from yuebot.audit import audit

GLOBAL_SCOPE = "global"

ScopeMode = Literal["shared", "per_user"]
T = TypeVar("T")

# Timestamp given to stored turns saved before turns carried one
UNDATED = datetime.min


class Turn(BaseModel):
    """One message in the short-term log. Immutable once appended."""

    model_config = ConfigDict(frozen=True)

    role: Literal["user", "assistant"]
    text: str = Field(validation_alias=AliasChoices("text", "content"))
    speaker_label: str | None = None
    created_at: datetime = Field(default_factory=datetime.now)
    condensed: bool = False  # Already folded into long-term memory

    @model_validator(mode="before")
    @classmethod
    def _date_stored_turn(cls, data: Any, info: ValidationInfo) -> Any:
        if info.context and info.context.get("stored") and isinstance(data, dict) and "created_at" not in data:
            return {**data, "created_at": UNDATED}
        return data


class IdentityRecord(BaseModel):
    """A known participant and the names they have gone by."""

    current_label: str
    prior_labels: list[str] = Field(default_factory=list)

    def observe(self, label: str) -> bool:
        """Record *label* as current. Returns True if the label changed."""
        if label == self.current_label:
            return False
        if self.current_label not in self.prior_labels:
            self.prior_labels.append(self.current_label)
        self.current_label = label
        return True


class LongTermMemory(BaseModel):
    """Distilled memory of a scope."""

    summaries: list[str] = Field(default_factory=list)
    facts: list[str] = Field(default_factory=list)
    identities: dict[str, IdentityRecord] = Field(default_factory=dict)

    def add_summary(self, summary: str, limit: int) -> None:
        """Append a summary, keeping only the newest *limit* entries."""
        self.summaries.append(summary)
        del self.summaries[:max(len(self.summaries) - limit, 0)]

    def merge_facts(self, new_facts: list[str], limit: int) -> None:
        """Merge facts without duplicates, keeping the last *limit* admitted."""
        for fact in new_facts:
            if fact not in self.facts:
                self.facts.append(fact)
        del self.facts[:max(len(self.facts) - limit, 0)]

    def register_identity(self, identity_id: str, label: str) -> IdentityRecord:
        """Create or refresh the record for *identity_id*."""
        record = self.identities.get(identity_id)
        if record is None:
            record = IdentityRecord(current_label=label)
            self.identities[identity_id] = record
        else:
            record.observe(label)
        return record


class ScopeState(BaseModel):
    """Everything remembered for one scope."""

    turns: list[Turn] = Field(default_factory=list)
    memory: LongTermMemory = Field(default_factory=LongTermMemory)

    @property
    def fresh_count(self) -> int:
        """Number of turns not yet condensed."""
        return sum(1 for t in self.turns if not t.condensed)

    @property
    def last_turn(self) -> Turn | None:
        return self.turns[-1] if self.turns else None


_SHARED_HISTORY = TypeAdapter(list[Turn])
_SCOPED_HISTORY = TypeAdapter(dict[str, list[Turn]])
_SCOPED_MEMORY = TypeAdapter(dict[str, LongTermMemory])


class MemoryStore:
    """
    Owns all conversational state and its JSON snapshots.

    Loading never fails: a missing, unreadable or malformed document
    initializes that tier empty and is logged. Saving is skipped once
    ``closing`` is set, except for the final flush during shutdown.
    """

    def __init__(
        self,
        history_path: Path,
        memory_path: Path,
        mode: ScopeMode = "per_user",
        max_history: int = 60,
    ):
        self.history_path = history_path
        self.memory_path = memory_path
        self.mode = mode
        self.max_history = max_history
        self.closing = False
        self._scopes: dict[str, ScopeState] = {}

    # ── scope access ────────────────────────────────────────────

    def scope_id_for(self, identity_id: str) -> str:
        """Return the scope an identity's messages belong to."""
        return GLOBAL_SCOPE if self.mode == "shared" else identity_id

    def get_scope(self, scope_id: str) -> ScopeState:
        """Get a scope, creating an empty one on first access."""
        scope = self._scopes.get(scope_id)
        if scope is None:
            scope = ScopeState()
            self._scopes[scope_id] = scope
        return scope

    def scopes(self) -> dict[str, ScopeState]:
        """Snapshot of scope id -> state."""
        return dict(self._scopes)

    def mutate(self, scope_id: str, fn: Callable[[ScopeState], T]) -> T:
        """Apply *fn* to a scope's state and return its result."""
        return fn(self.get_scope(scope_id))

    def append_turn(self, scope_id: str, turn: Turn) -> None:
        self.get_scope(scope_id).turns.append(turn)

    def trim(self, scope_id: str) -> int:
        """Drop the oldest turns beyond ``max_history``. Returns how many."""
        turns = self.get_scope(scope_id).turns
        excess = len(turns) - self.max_history
        if excess <= 0:
            return 0
        del turns[:excess]
        return excess

    def register_identity(self, scope_id: str, identity_id: str, label: str) -> IdentityRecord:
        return self.get_scope(scope_id).memory.register_identity(identity_id, label)

    # ── persistence ─────────────────────────────────────────────

    def load(self) -> None:
        """Load both documents, defaulting to empty state on any failure."""
        self._scopes = {}
        self._load_history()
        self._load_memory()

    def save(self, final: bool = False) -> None:
        """Write both documents."""
        self.save_history(final=final)
        self.save_memory(final=final)

    def save_history(self, final: bool = False) -> bool:
        """Write the turn log. Returns True if written."""
        if self.closing and not final:
            return False
        if self.mode == "shared":
            data: Any = self._dump_turns(self.get_scope(GLOBAL_SCOPE).turns)
        else:
            data = {sid: self._dump_turns(s.turns) for sid, s in self._scopes.items()}
        return self._write(self.history_path, data, "history")

    def save_memory(self, final: bool = False) -> bool:
        """Write long-term memory. Returns True if written."""
        if self.closing and not final:
            return False
        if self.mode == "shared":
            data: Any = self.get_scope(GLOBAL_SCOPE).memory.model_dump(mode="json")
        else:
            data = {sid: s.memory.model_dump(mode="json") for sid, s in self._scopes.items()}
        return self._write(self.memory_path, data, "memory")

    @staticmethod
    def _dump_turns(turns: list[Turn]) -> list[dict]:
        return [t.model_dump(mode="json") for t in turns]

    def _read(self, path: Path, kind: str) -> Any | None:
        """Read and parse a JSON document, or None if absent/corrupt."""
        if not path.exists():
            logger.info(f"No {kind} file at {path}, starting empty")
            audit(kind, status="created", reason="missing", path=str(path))
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to read {kind} file {path}: {e}")
            audit(kind, status="created", error=str(e))
            return None

    def _load_history(self) -> None:
        raw = self._read(self.history_path, "history")
        if raw is None:
            return
        try:
            if self.mode == "shared":
                loaded = {GLOBAL_SCOPE: _SHARED_HISTORY.validate_python(raw, context={"stored": True})}
            else:
                loaded = _SCOPED_HISTORY.validate_python(raw, context={"stored": True})
        except ValidationError as e:
            logger.warning(f"Malformed history file {self.history_path}: {e.error_count()} errors")
            audit("history", status="created", error=f"invalid {self.mode} layout")
            return

        for scope_id, turns in loaded.items():
            self.get_scope(scope_id).turns = turns
        logger.info(f"Loaded history for {len(loaded)} scope(s)")
        audit("history", status="loaded", entries=len(loaded))

    def _load_memory(self) -> None:
        raw = self._read(self.memory_path, "memory")
        if raw is None:
            return
        try:
            if self.mode == "shared":
                loaded = {GLOBAL_SCOPE: LongTermMemory.model_validate(raw)}
            else:
                loaded = _SCOPED_MEMORY.validate_python(raw)
        except ValidationError as e:
            logger.warning(f"Malformed memory file {self.memory_path}: {e.error_count()} errors")
            audit("memory", status="created", error=f"invalid {self.mode} layout")
            return

        for scope_id, memory in loaded.items():
            self.get_scope(scope_id).memory = memory
        logger.info(f"Loaded long-term memory for {len(loaded)} scope(s)")
        audit("memory", status="loaded", entries=len(loaded))

    def _write(self, path: Path, data: Any, kind: str) -> bool:
        """Back up the previous snapshot, then overwrite it."""
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            if path.exists():
                shutil.copyfile(path, path.with_name(path.name + ".bak"))
            path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
        except OSError as e:
            logger.error(f"Failed to save {kind} to {path}: {e}")
            audit("error", type=f"{kind}_save", error=str(e))
            return False

        entries = len(data) if isinstance(data, (list, dict)) else 0
        logger.debug(f"Saved {kind} ({entries} entries) to {path}")
        audit(kind, status="saved", entries=entries)
        return True
