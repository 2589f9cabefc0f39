"""cicd-lab-app: welcome service with a remotely managed beta banner."""

from .client import FlagClient, initialize
from .exceptions import ConfigError, ConfigErrorCodes, FlagClientError, FlagClientErrorCodes
from .http_provider import HttpFlagProvider
from .memory import InMemoryFlagProvider
from .messages import ResponseMessage
from .models import (
    ActivationStrategy,
    DecisionReason,
    EvaluationContext,
    FeatureToggle,
    FlagClientConfig,
    FlagDecision,
    FlagSnapshot,
    FlagState,
    ReadinessStrategy,
)
from .provider import FlagProvider

__version__ = "0.1.0"

__all__ = [
    "ActivationStrategy",
    "ConfigError",
    "ConfigErrorCodes",
    "DecisionReason",
    "EvaluationContext",
    "FeatureToggle",
    "FlagClient",
    "FlagClientConfig",
    "FlagClientError",
    "FlagClientErrorCodes",
    "FlagDecision",
    "FlagProvider",
    "FlagSnapshot",
    "FlagState",
    "HttpFlagProvider",
    "InMemoryFlagProvider",
    "ReadinessStrategy",
    "ResponseMessage",
    "__version__",
    "initialize",
]
