"""組み込みフラグ定義と初期投入"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone

import structlog

from .models import FeatureFlag, FlagStatus, RolloutStrategy, RolloutType
from .store import FlagStore

logger = structlog.stdlib.get_logger(__name__)


class BuiltinFlags:
    """組み込みフラグ ID 定数。"""

    # コア機能
    MELISSA_AI: str = "melissa-ai"
    ROI_ENGINE: str = "roi-engine"
    CONFIDENCE_SCORING: str = "confidence-scoring"
    HITL_REVIEW: str = "hitl-review-queue"

    # エクスポート
    EXPORT_PDF: str = "export-pdf"
    EXPORT_EXCEL: str = "export-excel"
    EXPORT_JSON: str = "export-json"
    EXPORT_MARKDOWN: str = "export-markdown"

    # 拡張機能
    ADVANCED_ROI_MODELING: str = "advanced-roi-modeling"
    SCENARIO_ANALYSIS: str = "scenario-analysis"
    COLLABORATIVE_REVIEW: str = "collaborative-review"
    API_ACCESS: str = "api-access"


def _core(
    flag_id: str,
    name: str,
    description: str,
    tags: tuple[str, ...],
    now: datetime,
    *,
    track_usage: bool = True,
    track_performance: bool = False,
) -> FeatureFlag:
    return FeatureFlag(
        id=flag_id,
        name=name,
        description=description,
        status=FlagStatus.ENABLED,
        owner="product",
        created_at=now,
        updated_at=now,
        enabled_at=now,
        track_usage=track_usage,
        track_performance=track_performance,
        tags=tags,
    )


def default_flags(now: datetime | None = None) -> list[FeatureFlag]:
    """組み込みフラグ一覧を返す。

    コア機能とエクスポート機能は enabled、シナリオ分析は 50% ロールアウト。
    """
    now = now or datetime.now(timezone.utc)
    return [
        _core(
            BuiltinFlags.MELISSA_AI,
            "Melissa AI Assistant",
            "AI-powered business case discovery and validation",
            ("core", "ai"),
            now,
            track_performance=True,
        ),
        _core(
            BuiltinFlags.ROI_ENGINE,
            "ROI Calculation Engine",
            "Deterministic ROI and value calculation",
            ("core", "analytics"),
            now,
        ),
        _core(
            BuiltinFlags.CONFIDENCE_SCORING,
            "Confidence & Uncertainty Scoring",
            "Data quality and confidence assessment",
            ("core", "analytics"),
            now,
        ),
        _core(
            BuiltinFlags.HITL_REVIEW,
            "Human-in-the-Loop Review Queue",
            "Review and governance of AI-extracted metrics",
            ("core", "governance"),
            now,
        ),
        _core(
            BuiltinFlags.EXPORT_PDF,
            "PDF Export",
            "Export business cases as PDF documents",
            ("export",),
            now,
        ),
        _core(
            BuiltinFlags.EXPORT_EXCEL,
            "Excel Export",
            "Export business cases as Excel workbooks",
            ("export",),
            now,
        ),
        _core(
            BuiltinFlags.EXPORT_JSON,
            "JSON Export",
            "Export business cases as JSON documents",
            ("export",),
            now,
        ),
        _core(
            BuiltinFlags.EXPORT_MARKDOWN,
            "Markdown Export",
            "Export business cases as Markdown documents",
            ("export",),
            now,
        ),
        FeatureFlag(
            id=BuiltinFlags.SCENARIO_ANALYSIS,
            name="Scenario Analysis",
            description="Explore different ROI scenarios and sensitivities",
            status=FlagStatus.ROLLOUT,
            rollout_strategy=RolloutStrategy(type=RolloutType.PERCENTAGE, percentage=50),
            owner="product",
            created_at=now,
            updated_at=now,
            track_usage=True,
            track_performance=True,
            tags=("beta", "analytics"),
        ),
    ]


def seed_store(store: FlagStore, flags: Iterable[FeatureFlag]) -> int:
    """ストアに初期フラグを投入する。

    投入はストアごとに一度だけ行われる。既存 ID は上書きせず、2 回目以降の呼び出しは
    呼び出し元の作成・変更・削除を保持したまま何もしない。

    Returns:
        追加したフラグ数
    """
    added = store.seed(flags)
    logger.info("flag store seeded", added=added)
    return added
