"""ロガー設定とフラグ評価メトリクス"""

from __future__ import annotations

import logging
import sys
from typing import Any, Protocol

import structlog
from opentelemetry import metrics

from .models import EvaluationResult, FeatureFlag


def new_logger(
    level: str = "INFO", format: str = "json", **context: Any
) -> structlog.stdlib.BoundLogger:
    """flagengine 全体の structlog 設定を行い、context を束縛したロガーを返す。

    各モジュールのロガーは ``structlog.stdlib.get_logger(__name__)`` で遅延取得しているため、
    この設定はエンジン生成前に一度呼べば全モジュールに反映される。
    json 形式では API の 500 応答時に記録する例外を構造化して出力する。

    Args:
        level: ログレベル ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
        format: 出力形式 ("json" or "text")
        context: 全ログに付与するキー（app, environment など）
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
    )

    shared: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    renderers: list[structlog.types.Processor] = (
        [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]
        if format == "json"
        else [structlog.dev.ConsoleRenderer()]
    )

    structlog.configure(
        processors=shared + renderers,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    return structlog.stdlib.get_logger("k1s0_flagengine").bind(**context)


class EvaluationRecorder(Protocol):
    """評価結果をテレメトリへ報告するプロトコル。"""

    def record(self, flag: FeatureFlag, result: EvaluationResult) -> None: ...


class OtelEvaluationRecorder:
    """OpenTelemetry メトリクスへ評価結果を記録する。

    track_usage のフラグは評価回数、track_performance のフラグは評価時間を記録する。
    """

    def __init__(
        self,
        meter_name: str = "k1s0_flagengine",
        version: str = "0.1.0",
        meter: metrics.Meter | None = None,
    ) -> None:
        if meter is None:
            meter = metrics.get_meter(meter_name, version=version)
        self._evaluations = meter.create_counter(
            name="flag_evaluations_total",
            description="Total number of feature flag evaluations",
            unit="1",
        )
        self._duration = meter.create_histogram(
            name="flag_evaluation_duration_ms",
            description="Feature flag evaluation duration in milliseconds",
            unit="ms",
        )

    def record(self, flag: FeatureFlag, result: EvaluationResult) -> None:
        attributes = {"flag_id": flag.id, "reason": str(result.reason)}
        if flag.track_usage:
            self._evaluations.add(1, {**attributes, "enabled": result.enabled})
        if flag.track_performance and result.evaluation_time_ms is not None:
            self._duration.record(result.evaluation_time_ms, attributes)
