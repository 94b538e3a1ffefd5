"""Invocation record handed to the upsert adapter by the workflow engine."""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional


def _pick(source: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    """First present key wins; lets callers use camelCase or snake_case."""
    for key in keys:
        if key in source:
            return source[key]
    return default


@dataclass
class NodeInfo:
    """The workflow node instance and its static configuration."""

    id: Any
    table: Optional[str] = None
    on_conflict: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "NodeInfo":
        config = data.get("data") or {}
        return cls(
            id=data.get("id"),
            table=_pick(config, "table"),
            on_conflict=_pick(config, "onConflict", "on_conflict"),
        )


@dataclass
class ModuleContext:
    """Per-project module state; ``secrets`` is None when nothing was resolved."""

    secrets: Optional[Mapping[str, Any]] = None


@dataclass
class ExecutionContext:
    project_id: Optional[str] = None
    current_spell: Optional[str] = None
    module: ModuleContext = field(default_factory=ModuleContext)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ExecutionContext":
        module = data.get("module") or {}
        if isinstance(module, ModuleContext):
            module_context = module
        else:
            module_context = ModuleContext(secrets=module.get("secrets"))
        return cls(
            project_id=_pick(data, "projectId", "project_id"),
            current_spell=_pick(data, "currentSpell", "current_spell"),
            module=module_context,
        )


@dataclass
class InvocationRecord:
    """Everything one upsert call needs: node config, runtime inputs, context.

    ``inputs["data"]`` holds the row (or rows) to write.
    """

    node: NodeInfo
    inputs: Dict[str, Any] = field(default_factory=dict)
    context: ExecutionContext = field(default_factory=ExecutionContext)

    @property
    def data(self) -> Any:
        return self.inputs.get("data")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "InvocationRecord":
        """Build from the engine's plain-dict shape.

        Example:
            >>> record = InvocationRecord.from_dict({
            ...     "node": {"id": 7,
            ...              "data": {"table": "users", "onConflict": "email"}},
            ...     "inputs": {"data": {"email": "a@x.com"}},
            ...     "context": {"projectId": "p1", "currentSpell": "s1",
            ...                 "module": {"secrets": {"pg_string": "postgres://..."}}},
            ... })
            >>> record.node.on_conflict
            'email'
        """
        return cls(
            node=NodeInfo.from_dict(data.get("node") or {}),
            inputs=dict(data.get("inputs") or {}),
            context=ExecutionContext.from_dict(data.get("context") or {}),
        )
