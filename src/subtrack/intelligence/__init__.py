"""Subscription detection: classifiers, scoring rules and categorisation."""

from .catalog import DEFAULT_CATALOG, ServiceCatalog
from .category import CategoryMapper, categorize
from .heuristic import HeuristicClassifier
from .llm import LLMClient, LLMError, OpenAIChatClient
from .merge import MergeEngine
from .oracle import OracleClassifier, OracleVerdict
from .rules import ScoreCard, score_email

__all__ = [
    "CategoryMapper",
    "DEFAULT_CATALOG",
    "HeuristicClassifier",
    "LLMClient",
    "LLMError",
    "MergeEngine",
    "OpenAIChatClient",
    "OracleClassifier",
    "OracleVerdict",
    "ScoreCard",
    "ServiceCatalog",
    "categorize",
    "score_email",
]
