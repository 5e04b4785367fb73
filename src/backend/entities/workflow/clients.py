"""Workflow client container for dependency injection.

``WorkflowClients`` bundles every I/O dependency the node executor needs.
Production code constructs it via ``create_workflow_clients()`` from
application settings; tests construct it from in-memory fakes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from config.settings import Settings
from entities.shared.chat_client import ModelDefaults, OpenAIChatClient
from entities.shared.expression import SafeExpressionEvaluator
from entities.shared.http_client import HttpxCaller
from entities.shared.protocols import (
    ChatCompletionService,
    ExpressionEvaluator,
    HttpCaller,
    SqlExecutionOptions,
    SqlExecutor,
)
from entities.shared.sql_client import SqlExecutorAdapter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkflowClients:
    """Immutable bundle of all I/O dependencies for workflow execution.

    All collaborator fields use Protocol types, enabling full dependency
    injection. Production code passes real clients; tests pass fakes.

    Args:
        chat: Chat-completion service for LLM nodes.
        sql_executor: SQL execution service for database query nodes.
        http: HTTP caller for API call nodes.
        evaluator: Expression evaluator for condition nodes.
        model_defaults: Default model settings that LLM nodes may override.
        sql_options: Options applied to every database query node.
    """

    chat: ChatCompletionService
    sql_executor: SqlExecutor
    http: HttpCaller
    evaluator: ExpressionEvaluator
    model_defaults: ModelDefaults = field(default_factory=ModelDefaults)
    sql_options: SqlExecutionOptions = field(default_factory=SqlExecutionOptions)


def create_workflow_clients(settings: Settings) -> WorkflowClients:
    """Build a ``WorkflowClients`` from application ``Settings``.

    No network or database connection is opened here; every collaborator
    connects lazily per call.

    Args:
        settings: Centralised application configuration.

    Returns:
        Fully-initialised ``WorkflowClients`` ready for ``NodeExecutor``.
    """
    # -- Model defaults ----------------------------------------------------
    model_defaults = ModelDefaults(
        base_url=settings.openai_base_url,
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        temperature=settings.openai_temperature,
    )
    if not settings.openai_base_url or not settings.openai_api_key:
        logger.warning("No default AI credentials configured; LLM nodes must supply their own")

    # -- Database query nodes are always read-only ---------------------------
    sql_options = SqlExecutionOptions(
        read_only=True,
        max_rows=settings.workflow_db_max_rows,
        timeout_seconds=settings.workflow_db_timeout_seconds,
        use_transaction=False,
    )

    return WorkflowClients(
        chat=OpenAIChatClient(azure_api_version=settings.azure_openai_api_version),
        sql_executor=SqlExecutorAdapter(
            settings.sql_connection_string,
            use_azure_ad=settings.sql_use_azure_ad,
            client_id=settings.azure_client_id,
        ),
        http=HttpxCaller(timeout=settings.api_call_timeout_seconds),
        evaluator=SafeExpressionEvaluator(),
        model_defaults=model_defaults,
        sql_options=sql_options,
    )
