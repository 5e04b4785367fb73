"""
Workflow graph models deserialized from the execute request.

Each submitted node carries a free-form ``data`` map. It is resolved once,
at load time, into a closed ``NodeConfig`` variant so the engine never
reads configuration by string key while it runs.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

logger = logging.getLogger(__name__)


class NodeKind(str, Enum):
    """Tagged role of a workflow node."""

    START = "start"
    OUTPUT = "output"
    LLM = "llm"
    DB_QUERY = "dbQuery"
    API_CALL = "apiCall"
    CONDITION = "condition"
    CUSTOM = "custom"


_KINDS_BY_NAME: dict[str, NodeKind] = {kind.value.lower(): kind for kind in NodeKind}


def resolve_kind_name(node_type: str | None, data: dict[str, Any] | None) -> str:
    """Return the raw kind name of a node.

    ``data.kind`` wins over the node's ``type``. A blank result means
    ``custom``.
    """
    name = node_type
    if data and data.get("kind") is not None:
        name = str(data["kind"])
    if name is None or not name.strip():
        return NodeKind.CUSTOM.value
    return name.strip()


def parse_kind(name: str) -> NodeKind:
    """Map a raw kind name to a ``NodeKind`` (case-insensitive)."""
    return _KINDS_BY_NAME.get(name.lower(), NodeKind.CUSTOM)


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _override(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


class _NodeConfigBase(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class StartConfig(_NodeConfigBase):
    """Entry node; emits the workflow's initial input."""

    kind: Literal[NodeKind.START] = NodeKind.START


class OutputConfig(_NodeConfigBase):
    """Terminal node; passes its input through as the final output."""

    kind: Literal[NodeKind.OUTPUT] = NodeKind.OUTPUT


class LlmConfig(_NodeConfigBase):
    """Chat-completion node with optional per-node model overrides."""

    kind: Literal[NodeKind.LLM] = NodeKind.LLM
    system_prompt: str = Field(default="", alias="systemPrompt")
    user_prompt: str = Field(default="", alias="userPrompt")
    base_url: str | None = Field(default=None, alias="baseUrl")
    api_key: str | None = Field(default=None, alias="apiKey")
    model: str | None = Field(default=None)
    temperature: float | None = Field(default=None)

    @field_validator("system_prompt", "user_prompt", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return _text(value)

    @field_validator("base_url", "api_key", "model", mode="before")
    @classmethod
    def _coerce_override(cls, value: Any) -> str | None:
        return _override(value)

    @field_validator("temperature", mode="before")
    @classmethod
    def _coerce_temperature(cls, value: Any) -> float | None:
        if value is None or isinstance(value, bool):
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            logger.warning("Ignoring non-numeric temperature override: %r", value)
            return None


class DbQueryConfig(_NodeConfigBase):
    """Read-only SQL query node."""

    kind: Literal[NodeKind.DB_QUERY] = NodeKind.DB_QUERY
    sql_query: str = Field(default="", alias="sqlQuery")

    @field_validator("sql_query", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return _text(value)


class ApiCallConfig(_NodeConfigBase):
    """Single outbound HTTP request node."""

    kind: Literal[NodeKind.API_CALL] = NodeKind.API_CALL
    url: str = ""
    method: str = "GET"
    headers: str = ""
    body: str = ""

    @field_validator("url", "headers", "body", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return _text(value)

    @field_validator("method", mode="before")
    @classmethod
    def _coerce_method(cls, value: Any) -> str:
        method = _text(value).strip()
        return method.upper() if method else "GET"


class ConditionConfig(_NodeConfigBase):
    """Boolean branch node; the first edge is the true branch."""

    kind: Literal[NodeKind.CONDITION] = NodeKind.CONDITION
    expression: str = ""

    @field_validator("expression", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return _text(value)


class CustomConfig(_NodeConfigBase):
    """Any node kind the engine does not implement."""

    kind: Literal[NodeKind.CUSTOM] = NodeKind.CUSTOM
    name: str = NodeKind.CUSTOM.value
    raw: dict[str, Any] = Field(default_factory=dict)


NodeConfig = Annotated[
    StartConfig
    | OutputConfig
    | LlmConfig
    | DbQueryConfig
    | ApiCallConfig
    | ConditionConfig
    | CustomConfig,
    Field(discriminator="kind"),
]


class WorkflowNode(BaseModel):
    """A node as submitted by the client, plus its resolved configuration."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Node id, unique within the graph")
    type: str = Field(default="", description="Client-side node type")
    data: dict[str, Any] = Field(default_factory=dict, description="Kind-specific settings")
    config: NodeConfig

    @model_validator(mode="before")
    @classmethod
    def _build_config(cls, values: Any) -> Any:
        if not isinstance(values, dict) or "config" in values:
            return values
        data = values.get("data") or {}
        if not isinstance(data, dict):
            raise ValueError("node data must be an object")
        name = resolve_kind_name(values.get("type"), data)
        kind = parse_kind(name)
        if kind is NodeKind.CUSTOM:
            config: dict[str, Any] = {"kind": kind, "name": name, "raw": data}
        else:
            config = {**data, "kind": kind}
        return {**values, "data": data, "config": config}

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str:
        return _text(value)

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, value: Any) -> str:
        return _text(value)

    @property
    def kind(self) -> NodeKind:
        return self.config.kind

    @property
    def kind_name(self) -> str:
        """Kind label used in trace entries and error messages."""
        if isinstance(self.config, CustomConfig):
            return self.config.name
        return self.config.kind.value


class WorkflowEdge(BaseModel):
    """Directed edge between two node ids."""

    model_config = ConfigDict(frozen=True)

    source: str
    target: str


class WorkflowGraph(BaseModel):
    """Workflow submitted for a single execution. Never persisted."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    nodes: list[WorkflowNode] = Field(default_factory=list)
    edges: list[WorkflowEdge] = Field(default_factory=list)
    initial_input: str | None = Field(
        default=None,
        validation_alias=AliasChoices("initialInput", "InitialInput", "initial_input"),
    )

    @field_validator("initial_input", mode="before")
    @classmethod
    def _coerce_initial_input(cls, value: Any) -> str | None:
        if value is None or isinstance(value, str):
            return value
        return str(value)

    @field_validator("nodes")
    @classmethod
    def _unique_ids(cls, nodes: list[WorkflowNode]) -> list[WorkflowNode]:
        seen: set[str] = set()
        for node in nodes:
            if node.id in seen:
                raise ValueError(f"Duplicate node id: {node.id}")
            seen.add(node.id)
        return nodes
