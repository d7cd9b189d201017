"""FeatureFlagService: ストアと評価器を束ねる問い合わせ窓口"""

from __future__ import annotations

import dataclasses
import time
from datetime import datetime, timezone

import structlog

from .evaluator import ConditionResolver, SegmentResolver, evaluate, require_user_id
from .models import EvaluationContext, EvaluationReason, EvaluationResult, FeatureFlag, FlagStatus
from .store import FlagStore
from .telemetry import EvaluationRecorder

logger = structlog.stdlib.get_logger(__name__)


class FeatureFlagService:
    """フラグ評価と管理操作のエントリポイント。

    未登録フラグの評価はエラーにせず無効として扱う。
    書き込み操作の認可は呼び出し側の責務。
    """

    def __init__(
        self,
        store: FlagStore,
        *,
        recorder: EvaluationRecorder | None = None,
        condition_resolver: ConditionResolver | None = None,
        segment_resolver: SegmentResolver | None = None,
    ) -> None:
        self._store = store
        self._recorder = recorder
        self._condition_resolver = condition_resolver
        self._segment_resolver = segment_resolver

    @property
    def store(self) -> FlagStore:
        return self._store

    def evaluate(self, flag_id: str, context: EvaluationContext) -> EvaluationResult:
        """flag_id のフラグを評価する。

        Raises:
            MissingContextError: user_id が空の場合
        """
        started = time.perf_counter()
        require_user_id(context)
        flag = self._store.get(flag_id)
        if flag is None:
            logger.debug("flag not found, evaluating as disabled", flag_id=flag_id)
            return EvaluationResult(
                flag_id=flag_id,
                enabled=False,
                reason=EvaluationReason.DISABLED,
                evaluation_time_ms=(time.perf_counter() - started) * 1000.0,
            )

        result = evaluate(
            flag,
            context,
            condition_resolver=self._condition_resolver,
            segment_resolver=self._segment_resolver,
        )
        if self._recorder is not None and (flag.track_usage or flag.track_performance):
            self._recorder.record(flag, result)
        return result

    def is_enabled(self, flag_id: str, context: EvaluationContext) -> bool:
        return self.evaluate(flag_id, context).enabled

    def get(self, flag_id: str) -> FeatureFlag | None:
        return self._store.get(flag_id)

    def list(self) -> list[FeatureFlag]:
        return self._store.list()

    def upsert(self, flag: FeatureFlag) -> FeatureFlag:
        """フラグを作成または置換する。

        updated_at を更新し、enabled / disabled への遷移時は
        enabled_at / disabled_at が未設定なら現在時刻を記録する。
        """
        now = datetime.now(timezone.utc)
        previous = self._store.get(flag.id)
        changes: dict[str, object] = {"updated_at": now}
        if previous is not None:
            changes["created_at"] = previous.created_at
        status_changed = previous is None or previous.status != flag.status
        if status_changed and flag.status == FlagStatus.ENABLED and flag.enabled_at is None:
            changes["enabled_at"] = now
        if status_changed and flag.status == FlagStatus.DISABLED and flag.disabled_at is None:
            changes["disabled_at"] = now
        return self._store.upsert(dataclasses.replace(flag, **changes))

    def delete(self, flag_id: str) -> bool:
        return self._store.delete(flag_id)
