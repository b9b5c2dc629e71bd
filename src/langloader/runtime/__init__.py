"""Execution environment and evaluation dispatch."""

from .dispatcher import EvaluationDispatcher, EvaluatorKind, LanguageHandle
from .environment import ExecutionEnvironment

__all__ = ["EvaluationDispatcher", "EvaluatorKind", "LanguageHandle", "ExecutionEnvironment"]
