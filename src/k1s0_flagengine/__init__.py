"""k1s0 flagengine library."""

from .api import AdminAuthorizer, ApiResponse, FlagApi
from .bootstrap import build_service, build_watcher
from .bucketing import bucket_for, hash_user_id
from .client import FeatureFlagClient, LocalFeatureFlagClient
from .config import FlagEngineConfig, load_config
from .evaluator import ConditionResolver, SegmentResolver, evaluate
from .exceptions import (
    FlagEngineError,
    FlagEngineErrorCodes,
    InvalidFlagDefinitionError,
    MissingContextError,
)
from .http_client import ClientConfig, HttpFeatureFlagClient
from .models import (
    EvaluationContext,
    EvaluationReason,
    EvaluationResult,
    FeatureFlag,
    FlagStatus,
    RolloutStrategy,
    RolloutType,
    TargetingRule,
)
from .seed import BuiltinFlags, default_flags, seed_store
from .service import FeatureFlagService
from .store import FlagStore, InMemoryFlagStore
from .telemetry import EvaluationRecorder, OtelEvaluationRecorder, new_logger
from .watcher import FeatureFlagGuard, FeatureFlagWatcher, FlagState

__all__ = [
    "AdminAuthorizer",
    "ApiResponse",
    "BuiltinFlags",
    "ClientConfig",
    "ConditionResolver",
    "EvaluationContext",
    "EvaluationReason",
    "EvaluationRecorder",
    "EvaluationResult",
    "FeatureFlag",
    "FeatureFlagClient",
    "FeatureFlagGuard",
    "FeatureFlagService",
    "FeatureFlagWatcher",
    "FlagApi",
    "FlagEngineConfig",
    "FlagEngineError",
    "FlagEngineErrorCodes",
    "FlagState",
    "FlagStatus",
    "FlagStore",
    "HttpFeatureFlagClient",
    "InMemoryFlagStore",
    "InvalidFlagDefinitionError",
    "LocalFeatureFlagClient",
    "MissingContextError",
    "OtelEvaluationRecorder",
    "RolloutStrategy",
    "RolloutType",
    "SegmentResolver",
    "TargetingRule",
    "bucket_for",
    "build_service",
    "build_watcher",
    "default_flags",
    "evaluate",
    "hash_user_id",
    "load_config",
    "new_logger",
    "seed_store",
]
