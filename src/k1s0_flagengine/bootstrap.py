"""設定からストア・サービス・クライアントを組み立てる"""

from __future__ import annotations

from .client import FeatureFlagClient
from .config import FlagEngineConfig
from .evaluator import ConditionResolver, SegmentResolver
from .http_client import HttpFeatureFlagClient
from .models import FeatureFlag
from .seed import default_flags, seed_store
from .service import FeatureFlagService
from .store import InMemoryFlagStore
from .telemetry import OtelEvaluationRecorder, new_logger
from .watcher import FeatureFlagWatcher


def build_service(
    config: FlagEngineConfig,
    *,
    condition_resolver: ConditionResolver | None = None,
    segment_resolver: SegmentResolver | None = None,
) -> FeatureFlagService:
    """設定に従ってフラグストアを初期化し FeatureFlagService を返す。

    初期投入はストア生成時の一度だけ行う。設定のフラグ定義が不正な場合は
    InvalidFlagDefinitionError を送出し、サービスは生成しない。
    """
    logger = new_logger(
        level=config.log.level,
        format=config.log.format,
        app=config.app.name,
        environment=config.app.environment,
    )

    flags: list[FeatureFlag] = default_flags() if config.seed.builtin else []
    flags.extend(FeatureFlag.from_dict(data) for data in config.seed.flags)

    store = InMemoryFlagStore()
    seed_store(store, flags)

    recorder = (
        OtelEvaluationRecorder(meter_name=config.telemetry.meter_name, version=config.app.version)
        if config.telemetry.enabled
        else None
    )
    logger.info("flag engine initialized", flags=len(store), telemetry=recorder is not None)
    return FeatureFlagService(
        store,
        recorder=recorder,
        condition_resolver=condition_resolver,
        segment_resolver=segment_resolver,
    )


def build_watcher(
    config: FlagEngineConfig,
    flag_id: str,
    user_id: str,
    client: FeatureFlagClient | None = None,
) -> FeatureFlagWatcher:
    """設定のクライアント設定で FeatureFlagWatcher を生成する。"""
    if client is None:
        client = HttpFeatureFlagClient(config.client.to_client_config())
    return FeatureFlagWatcher(
        client,
        flag_id,
        user_id,
        poll_interval=config.client.poll_interval_seconds,
    )
