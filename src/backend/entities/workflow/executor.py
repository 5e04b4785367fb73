"""
Per-kind execution of a single workflow node.

Failure policy
--------------
Node failures are either *soft* (a structured value is written to the
node's output slot and traversal continues) or *hard* (the exception
propagates and aborts the run):

- Llm: a buffered collaborator failure is soft (``{"error": message}``).
  A streaming collaborator failure is hard. ``ConfigurationError`` is hard
  in both modes.
- DbQuery: always soft; the SQL envelope carries the error inline.
- ApiCall: a blank URL is soft (``{"error": "Invalid URL", "nodeId"}``) and
  non-2xx responses are ordinary values. Transport exceptions are hard.
- Condition: ``ExpressionError`` is hard.
- Custom: soft (``{"error": "Unsupported node type: <name>", "nodeId"}``).
"""

from __future__ import annotations

import logging
from typing import Any

from entities.shared.chat_client import ConfigurationError, resolve_model_config
from entities.shared.http_client import parse_headers
from entities.shared.protocols import DeltaCallback
from entities.shared.substitution import interpolate
from models import (
    ApiCallConfig,
    ConditionConfig,
    CustomConfig,
    DbQueryConfig,
    ExecutionContext,
    LlmConfig,
    OutputConfig,
    StartConfig,
    WorkflowNode,
)

from .clients import WorkflowClients

logger = logging.getLogger(__name__)


class NodeExecutor:
    """Runs one node against the current context.

    Args:
        clients: Collaborator bundle used by LLM, database, API and
            condition nodes.
    """

    def __init__(self, clients: WorkflowClients) -> None:
        self._clients = clients

    async def execute(
        self,
        node: WorkflowNode,
        context: ExecutionContext,
        on_delta: DeltaCallback | None = None,
    ) -> Any:  # noqa: ANN401
        """Execute *node* and return the value it produces.

        Args:
            node: Node to run.
            context: Current execution context (read-only here).
            on_delta: When given, LLM nodes stream and forward every text
                fragment to this callback.

        Returns:
            The node's output value.
        """
        config = node.config
        logger.debug("Executing node %s (%s)", node.id, node.kind_name)

        if isinstance(config, (StartConfig, OutputConfig)):
            return context.input if context.input is not None else ""
        if isinstance(config, LlmConfig):
            return await self._execute_llm(config, context, on_delta)
        if isinstance(config, DbQueryConfig):
            return await self._execute_db_query(config, context)
        if isinstance(config, ApiCallConfig):
            return await self._execute_api_call(node, config, context)
        if isinstance(config, ConditionConfig):
            return self._execute_condition(config, context)
        if isinstance(config, CustomConfig):
            logger.warning("Unsupported node type %r on node %s", config.name, node.id)
            return {"error": f"Unsupported node type: {config.name}", "nodeId": node.id}
        raise TypeError(f"Unhandled node configuration: {type(config).__name__}")

    # -- LLM ---------------------------------------------------------------

    async def _execute_llm(
        self,
        config: LlmConfig,
        context: ExecutionContext,
        on_delta: DeltaCallback | None,
    ) -> Any:  # noqa: ANN401
        system_prompt = interpolate(config.system_prompt, context.lookup)
        user_prompt = interpolate(config.user_prompt, context.lookup)
        model_config = resolve_model_config(
            self._clients.model_defaults,
            base_url=config.base_url,
            api_key=config.api_key,
            model=config.model,
            temperature=config.temperature,
        )

        if on_delta is not None:
            chunks: list[str] = []

            async def _forward(delta: str) -> None:
                chunks.append(delta)
                await on_delta(delta)

            await self._clients.chat.stream_complete(
                model_config, system_prompt, user_prompt, _forward
            )
            return "".join(chunks)

        try:
            return await self._clients.chat.complete(model_config, system_prompt, user_prompt)
        except ConfigurationError:
            raise
        except Exception as exc:
            logger.warning("LLM call failed: %s", exc)
            return {"error": str(exc)}

    # -- Database query ----------------------------------------------------

    async def _execute_db_query(self, config: DbQueryConfig, context: ExecutionContext) -> Any:  # noqa: ANN401
        sql = interpolate(config.sql_query, context.lookup)
        return await self._clients.sql_executor.execute(sql, self._clients.sql_options)

    # -- API call ----------------------------------------------------------

    async def _execute_api_call(
        self,
        node: WorkflowNode,
        config: ApiCallConfig,
        context: ExecutionContext,
    ) -> Any:  # noqa: ANN401
        url = interpolate(config.url, context.lookup)
        if not url.strip():
            return {"error": "Invalid URL", "nodeId": node.id}

        headers = parse_headers(interpolate(config.headers, context.lookup))
        body = interpolate(config.body, context.lookup)
        return await self._clients.http.call(config.method, url, headers, body or None)

    # -- Condition ---------------------------------------------------------

    def _execute_condition(self, config: ConditionConfig, context: ExecutionContext) -> Any:  # noqa: ANN401
        expression = interpolate(config.expression, context.lookup)
        return self._clients.evaluator.evaluate(expression)
