"""Tool registration from YAML configuration.

Loads tool definitions from ``config/tools.yaml``, resolves each tool's
pydantic input model and classifies it as read or write.  Write tools get
a consistent note appended to their description so the agent knows about
the ``confirm`` requirement and write serialization before calling them.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel

from jamf_gateway.models.schemas import (
    BatchInventoryUpdateInput,
    DeleteComputerInput,
    GetComputerDetailsInput,
    GetPolicyDetailsInput,
    ListComputerGroupsInput,
    ListPoliciesInput,
    SearchComputersInput,
    UpdateInventoryInput,
)
from jamf_gateway.write_queue import SKILL_PREFIX, WRITE_PREFIXES, is_write_like_tool_name

WRITE_NOTE = (
    "Writes require `confirm:true` and `JAMF_WRITE_ENABLED=true`. "
    "Writes are serialized to reduce Jamf 409 conflicts."
)

# ── Input model mapping ────────────────────────────────────────────────

_INPUT_MODELS: dict[str, type[BaseModel]] = {
    "search_computers": SearchComputersInput,
    "get_computer_details": GetComputerDetailsInput,
    "delete_computer": DeleteComputerInput,
    "update_inventory": UpdateInventoryInput,
    "list_policies": ListPoliciesInput,
    "get_policy_details": GetPolicyDetailsInput,
    "list_computer_groups": ListComputerGroupsInput,
    "skill_batch_inventory_update": BatchInventoryUpdateInput,
}


def decorate_description(description: str, note: str) -> str:
    """Append *note* to *description* once."""
    base = str(description or "").strip()
    note = str(note or "").strip()
    if not note:
        return base
    if not base:
        return note
    if note in base:
        return base
    return f"{base} {note}"


# ── Data class ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ToolDefinition:
    """One entry of ``tools.yaml`` after classification.

    Attributes:
        name:        MCP tool name, also the dispatcher route key.
        description: Text advertised in ``tools/list``.  Write tools carry
                     ``WRITE_NOTE`` at the end.
        tags:        Free-form labels from the YAML entry.
        write_like:  Whether the tool changes state in Jamf Pro.
        input_model: Pydantic model the handler validates arguments with.
    """

    name: str
    description: str
    tags: list[str] = field(default_factory=list)
    write_like: bool = False
    input_model: type[BaseModel] = field(default=BaseModel)


# ── Registry ────────────────────────────────────────────────────────────


class ToolRegistry:
    """Tool catalogue read from ``tools.yaml``.

    A tool is write-like when its name starts with a write verb (the same
    rule the write queue applies) or when the YAML entry sets
    ``writes: true`` for compound tools whose names do not look like writes.

    Args:
        config_path:      YAML file with a top-level ``tools:`` list.
        write_prefixes:   Verb prefixes used for name classification.
        namespace_prefix: Dispatch prefix stripped before matching.

    Raises:
        FileNotFoundError: *config_path* does not exist.
        ValueError: Malformed YAML, an entry without name or description,
                    a tool with no input model, or a repeated name.
    """

    def __init__(
        self,
        config_path: str | Path,
        write_prefixes: Iterable[str] = WRITE_PREFIXES,
        namespace_prefix: str = SKILL_PREFIX,
    ) -> None:
        self._write_prefixes = tuple(write_prefixes)
        self._namespace_prefix = namespace_prefix
        self._tools: dict[str, ToolDefinition] = {}
        for definition in self._read(Path(config_path)):
            if definition.name in self._tools:
                raise ValueError(f"Tool '{definition.name}' is defined more than once in {config_path}")
            self._tools[definition.name] = definition

    # ── Loading ─────────────────────────────────────────────────────

    def _read(self, path: Path) -> list[ToolDefinition]:
        try:
            data: Any = yaml.safe_load(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            raise FileNotFoundError(f"Tool config not found: {path}") from None
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {path}: {exc}") from exc

        entries = data.get("tools") if isinstance(data, dict) else None
        if entries is None:
            raise ValueError(f"{path} has no top-level 'tools' list")
        if not entries:
            raise ValueError(f"No tools defined in {path}")
        return [self._build(entry, path) for entry in entries]

    def _build(self, entry: dict[str, Any], path: Path) -> ToolDefinition:
        name = entry.get("name")
        description = entry.get("description")
        if not name or not description:
            raise ValueError(f"Tool entry {entry!r} in {path} needs both 'name' and 'description'")

        input_model = _INPUT_MODELS.get(name)
        if input_model is None:
            raise ValueError(f"Unknown tool '{name}' in {path}, expected one of {sorted(_INPUT_MODELS)}")

        write_like = bool(entry.get("writes", False)) or is_write_like_tool_name(
            name, self._write_prefixes, self._namespace_prefix
        )
        return ToolDefinition(
            name=name,
            description=decorate_description(description, WRITE_NOTE) if write_like else description,
            tags=list(entry.get("tags") or []),
            write_like=write_like,
            input_model=input_model,
        )

    # ── Access ──────────────────────────────────────────────────────

    def get(self, name: str) -> ToolDefinition | None:
        return self._tools.get(name)

    def list_all(self) -> list[ToolDefinition]:
        """Definitions in YAML order."""
        return list(self._tools.values())

    @property
    def tool_count(self) -> int:
        return len(self._tools)

    def tool_names(self) -> set[str]:
        return set(self._tools)
