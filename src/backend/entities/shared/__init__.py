"""Shared clients and helpers used by workflow nodes."""

from .chat_client import ConfigurationError, ModelDefaults, OpenAIChatClient, resolve_model_config
from .expression import ExpressionError, SafeExpressionEvaluator
from .http_client import HttpxCaller, parse_headers
from .sql_client import AsyncSqlClient, SqlExecutorAdapter
from .substitution import interpolate, stringify

__all__ = [
    "AsyncSqlClient",
    "ConfigurationError",
    "ExpressionError",
    "HttpxCaller",
    "ModelDefaults",
    "OpenAIChatClient",
    "SafeExpressionEvaluator",
    "SqlExecutorAdapter",
    "interpolate",
    "parse_headers",
    "resolve_model_config",
    "stringify",
]
