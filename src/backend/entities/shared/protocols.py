"""Protocol interfaces for I/O boundaries.

These protocols enable dependency injection for testability.
Production implementations wrap the openai SDK, aioodbc and httpx;
test fakes return canned data with zero network or database access.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from models import TraceEntry, WorkflowNode, WorkflowResult

DeltaCallback = Callable[[str], Awaitable[None]]
"""Async callback receiving one streamed text fragment."""


@dataclass(frozen=True, slots=True)
class SqlExecutionOptions:
    """Execution options forwarded to the SQL service.

    Attributes:
        read_only: Reject statements that modify data.
        max_rows: Maximum number of rows returned (0 → unlimited).
        timeout_seconds: Statement timeout.
        use_transaction: Run inside a transaction, rolled back on failure.
    """

    read_only: bool = True
    max_rows: int = 1000
    timeout_seconds: int = 30
    use_transaction: bool = False


@dataclass(frozen=True, slots=True)
class ModelConfig:
    """Fully resolved chat-model settings for one call.

    Attributes:
        base_url: OpenAI-compatible API root (already normalized).
        api_key: Bearer credential.
        model: Model or Azure deployment name.
        temperature: Sampling temperature.
        azure: Whether ``base_url`` points at an Azure OpenAI resource.
    """

    base_url: str
    api_key: str
    model: str
    temperature: float
    azure: bool = False


@runtime_checkable
class SqlExecutor(Protocol):
    """Executes SQL text against the query database.

    Returns a dict with keys: ``success``, ``rows`` or ``affectedRows``,
    ``error``, ``duration``. Failures are reported inline, never raised.
    """

    async def execute(self, sql: str, options: SqlExecutionOptions) -> dict[str, Any]:
        """Execute a SQL statement.

        Args:
            sql: SQL text to run.
            options: Read-only flag, row cap, timeout and transaction mode.

        Returns:
            Execution envelope with rows or affected-row count, or an error.
        """
        ...


@runtime_checkable
class ChatCompletionService(Protocol):
    """Calls a chat-completion model, buffered or streamed."""

    async def complete(self, config: ModelConfig, system_prompt: str, user_prompt: str) -> str:
        """Return the full completion text.

        Args:
            config: Resolved model settings.
            system_prompt: System message.
            user_prompt: User message.

        Returns:
            The assistant message content.
        """
        ...

    async def stream_complete(
        self,
        config: ModelConfig,
        system_prompt: str,
        user_prompt: str,
        on_delta: DeltaCallback,
    ) -> None:
        """Stream a completion, awaiting *on_delta* for every text fragment.

        Args:
            config: Resolved model settings.
            system_prompt: System message.
            user_prompt: User message.
            on_delta: Callback receiving each non-empty fragment.
        """
        ...


@runtime_checkable
class HttpCaller(Protocol):
    """Issues a single HTTP request for API call nodes."""

    async def call(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: str | None,
    ) -> dict[str, Any]:
        """Send one request.

        Args:
            method: HTTP method (upper-case).
            url: Absolute request URL.
            headers: Request headers.
            body: Request body, or ``None`` for no body.

        Returns:
            Dict with ``statusCode`` and ``content`` keys.
        """
        ...


@runtime_checkable
class ExpressionEvaluator(Protocol):
    """Evaluates arithmetic / boolean expressions for condition nodes."""

    def evaluate(self, expression: str) -> Any:  # noqa: ANN401
        """Evaluate an expression.

        Args:
            expression: Expression text.

        Returns:
            The raw evaluated value.
        """
        ...


@runtime_checkable
class WorkflowSink(Protocol):
    """Receives progress notifications from the traversal engine.

    ``streams_deltas`` selects the streaming code path for LLM nodes.
    """

    streams_deltas: bool

    async def run_started(self) -> None:
        """Signal the start of a run."""
        ...

    async def node_started(self, node: WorkflowNode) -> None:
        """Signal that *node* is about to execute."""
        ...

    async def node_delta(self, node: WorkflowNode, delta: str) -> None:
        """Forward one streamed text fragment produced by *node*."""
        ...

    async def node_finished(self, entry: TraceEntry) -> None:
        """Signal that a trace entry was recorded."""
        ...

    async def run_finished(self, result: WorkflowResult) -> None:
        """Signal the end of a run."""
        ...
