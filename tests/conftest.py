"""Shared test fixtures for the workflow service."""

import sys
from pathlib import Path
from typing import Any

import pytest

# Ensure src/backend/ is on the path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src" / "backend"))

from config.settings import Settings
from entities.shared.chat_client import ModelDefaults
from entities.shared.expression import SafeExpressionEvaluator
from entities.shared.protocols import DeltaCallback, ModelConfig, SqlExecutionOptions
from entities.workflow.clients import WorkflowClients
from entities.workflow.executor import NodeExecutor
from models import TraceEntry, WorkflowGraph, WorkflowNode, WorkflowResult

# ---------------------------------------------------------------------------
# Protocol fakes
# ---------------------------------------------------------------------------

TEST_MODEL_DEFAULTS = ModelDefaults(
    base_url="https://api.example.com",
    api_key="sk-test",
    model="gpt-4o-mini",
    temperature=0.2,
)


class FakeChatService:
    """In-memory fake satisfying the ``ChatCompletionService`` protocol.

    Returns a canned reply (or streams canned fragments) and records every
    call for assertions. ``error`` makes every call raise.
    """

    def __init__(
        self,
        reply: str = "fake reply",
        fragments: list[str] | None = None,
        error: Exception | None = None,
    ) -> None:
        self.reply = reply
        self.fragments: list[str] = fragments if fragments is not None else [reply]
        self.error = error
        self.calls: list[tuple[ModelConfig, str, str]] = []
        self.stream_calls: list[tuple[ModelConfig, str, str]] = []

    async def complete(self, config: ModelConfig, system_prompt: str, user_prompt: str) -> str:
        """Return the canned reply."""
        self.calls.append((config, system_prompt, user_prompt))
        if self.error:
            raise self.error
        return self.reply

    async def stream_complete(
        self,
        config: ModelConfig,
        system_prompt: str,
        user_prompt: str,
        on_delta: DeltaCallback,
    ) -> None:
        """Forward each canned fragment to *on_delta*."""
        self.stream_calls.append((config, system_prompt, user_prompt))
        for fragment in self.fragments:
            await on_delta(fragment)
        if self.error:
            raise self.error


class FakeSqlExecutor:
    """In-memory fake satisfying the ``SqlExecutor`` protocol.

    Returns canned rows or an inline error, and records every call.
    """

    def __init__(
        self,
        rows: list[dict[str, Any]] | None = None,
        error: str | None = None,
    ) -> None:
        self.rows: list[dict[str, Any]] = rows if rows is not None else [{"id": 1}]
        self.error: str | None = error
        self.calls: list[tuple[str, SqlExecutionOptions]] = []

    async def execute(self, sql: str, options: SqlExecutionOptions) -> dict[str, Any]:
        """Return a success/failure envelope mimicking ``AsyncSqlClient``."""
        self.calls.append((sql, options))

        if self.error:
            return {"success": False, "error": self.error, "duration": "0ms"}

        return {"success": True, "rows": self.rows, "error": None, "duration": "1ms"}


class FakeHttpCaller:
    """In-memory fake satisfying the ``HttpCaller`` protocol."""

    def __init__(
        self,
        status_code: int = 200,
        content: str = "{}",
        error: Exception | None = None,
    ) -> None:
        self.status_code = status_code
        self.content = content
        self.error = error
        self.calls: list[tuple[str, str, dict[str, str], str | None]] = []

    async def call(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: str | None,
    ) -> dict[str, Any]:
        """Record the request and return the canned response."""
        self.calls.append((method, url, headers, body))
        if self.error:
            raise self.error
        return {"statusCode": self.status_code, "content": self.content}


class RecordingSink:
    """Spy satisfying the ``WorkflowSink`` protocol.

    Captures every notification as ``(name, payload)`` for assertions.
    """

    def __init__(self, streams_deltas: bool = True) -> None:
        self.streams_deltas = streams_deltas
        self.events: list[tuple[str, Any]] = []

    async def run_started(self) -> None:
        self.events.append(("start", None))

    async def node_started(self, node: WorkflowNode) -> None:
        self.events.append(("trace", node.id))

    async def node_delta(self, node: WorkflowNode, delta: str) -> None:
        self.events.append(("delta", delta))

    async def node_finished(self, entry: TraceEntry) -> None:
        self.events.append(("finished", entry.node_id))

    async def run_finished(self, result: WorkflowResult) -> None:
        self.events.append(("end", result.output))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def make_clients(
    *,
    chat: FakeChatService | None = None,
    sql: FakeSqlExecutor | None = None,
    http: FakeHttpCaller | None = None,
    model_defaults: ModelDefaults = TEST_MODEL_DEFAULTS,
) -> WorkflowClients:
    """Build a ``WorkflowClients`` bundle from fakes."""
    return WorkflowClients(
        chat=chat or FakeChatService(),
        sql_executor=sql or FakeSqlExecutor(),
        http=http or FakeHttpCaller(),
        evaluator=SafeExpressionEvaluator(),
        model_defaults=model_defaults,
        sql_options=SqlExecutionOptions(),
    )


def make_graph(
    nodes: list[dict[str, Any]],
    edges: list[tuple[str, str]],
    initial_input: str | None = None,
) -> WorkflowGraph:
    """Build a ``WorkflowGraph`` from compact node dicts and edge pairs."""
    return WorkflowGraph.model_validate(
        {
            "nodes": nodes,
            "edges": [{"source": source, "target": target} for source, target in edges],
            "initialInput": initial_input,
        }
    )


# ---------------------------------------------------------------------------
# Pytest fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def test_settings() -> Settings:
    """Return a ``Settings`` instance populated with safe test defaults."""
    return Settings(
        openai_base_url="https://api.example.com",
        openai_api_key="sk-test",
        sql_connection_string="Driver={ODBC Driver 18 for SQL Server};Server=test",
    )


@pytest.fixture
def fake_chat() -> FakeChatService:
    """Return a ``FakeChatService`` with a single canned reply."""
    return FakeChatService()


@pytest.fixture
def fake_sql_executor() -> FakeSqlExecutor:
    """Return a ``FakeSqlExecutor`` yielding one ``{"id": 1}`` row."""
    return FakeSqlExecutor()


@pytest.fixture
def fake_http() -> FakeHttpCaller:
    """Return a ``FakeHttpCaller`` answering 200 ``{}``."""
    return FakeHttpCaller()


@pytest.fixture
def recording_sink() -> RecordingSink:
    """Return a fresh streaming ``RecordingSink``."""
    return RecordingSink()


@pytest.fixture
def executor(
    fake_chat: FakeChatService,
    fake_sql_executor: FakeSqlExecutor,
    fake_http: FakeHttpCaller,
) -> NodeExecutor:
    """Return a ``NodeExecutor`` wired to the default fakes."""
    return NodeExecutor(make_clients(chat=fake_chat, sql=fake_sql_executor, http=fake_http))
