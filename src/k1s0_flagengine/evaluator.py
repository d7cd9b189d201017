"""フラグ評価アルゴリズム"""

from __future__ import annotations

import time
from typing import Any, Protocol

from .bucketing import bucket_for
from .exceptions import MissingContextError
from .models import (
    EvaluationContext,
    EvaluationReason,
    EvaluationResult,
    FeatureFlag,
    FlagStatus,
    RolloutType,
)


class ConditionResolver(Protocol):
    """ターゲティングルールの condition を解釈するプロトコル。"""

    def evaluate(self, condition: str, context: EvaluationContext) -> bool: ...


class SegmentResolver(Protocol):
    """user_segment ロールアウトのセグメント判定を行うプロトコル。"""

    def matches(self, segment_rules: dict[str, bool], context: EvaluationContext) -> bool: ...


def _decide(
    flag: FeatureFlag,
    user_id: str,
    context: EvaluationContext,
    condition_resolver: ConditionResolver | None,
    segment_resolver: SegmentResolver | None,
) -> tuple[bool, EvaluationReason]:
    if flag.status == FlagStatus.DISABLED:
        return False, EvaluationReason.DISABLED

    # 明示的なユーザー指定は status より優先する
    if user_id in flag.disabled_for_users:
        return False, EvaluationReason.TARGETING_RULE
    if user_id in flag.enabled_for_users:
        return True, EvaluationReason.USER_LIST

    if condition_resolver is not None:
        for rule in flag.targeting_rules:
            if condition_resolver.evaluate(rule.condition, context):
                return rule.enabled, EvaluationReason.TARGETING_RULE

    # NOTE: enabled の理由が "disabled" になるのは既存の API 互換のため
    if flag.status == FlagStatus.ENABLED:
        return True, EvaluationReason.DISABLED

    strategy = flag.rollout_strategy
    if flag.status == FlagStatus.ROLLOUT and strategy is not None:
        if strategy.type == RolloutType.PERCENTAGE and strategy.percentage is not None:
            return bucket_for(user_id) < strategy.percentage, EvaluationReason.ROLLOUT_PERCENTAGE
        if strategy.type == RolloutType.USER_LIST and strategy.user_ids is not None:
            return user_id in strategy.user_ids, EvaluationReason.USER_LIST
        if (
            strategy.type == RolloutType.USER_SEGMENT
            and strategy.segment_rules is not None
            and segment_resolver is not None
        ):
            matched = segment_resolver.matches(strategy.segment_rules, context)
            return matched, EvaluationReason.TARGETING_RULE

    return False, EvaluationReason.DISABLED


def require_user_id(context: EvaluationContext | None) -> str:
    """コンテキストから user_id を取り出す。空の場合は MissingContextError。"""
    user_id: Any = context.user_id if context is not None else None
    if not isinstance(user_id, str) or not user_id:
        raise MissingContextError()
    return user_id


def evaluate(
    flag: FeatureFlag,
    context: EvaluationContext,
    *,
    condition_resolver: ConditionResolver | None = None,
    segment_resolver: SegmentResolver | None = None,
) -> EvaluationResult:
    """フラグをコンテキストに対して評価する。副作用を持たない。

    評価順序は先頭から順に判定し、最初に一致したもので確定する。

    1. status が disabled
    2. disabled_for_users に含まれる
    3. enabled_for_users に含まれる
    4. (condition_resolver 指定時) 条件が一致したターゲティングルール
    5. status が enabled
    6. rollout かつ percentage 戦略: バケット < percentage
    7. rollout かつ user_list 戦略: user_ids に含まれる
    8. (segment_resolver 指定時) rollout かつ user_segment 戦略
    9. それ以外は無効

    Args:
        flag: 評価対象のフラグ
        context: 評価コンテキスト
        condition_resolver: ターゲティングルールの解釈器（オプション）
        segment_resolver: セグメント判定器（オプション）

    Returns:
        評価結果

    Raises:
        MissingContextError: user_id が空の場合
    """
    started = time.perf_counter()
    user_id = require_user_id(context)
    enabled, reason = _decide(flag, user_id, context, condition_resolver, segment_resolver)
    return EvaluationResult(
        flag_id=flag.id,
        enabled=enabled,
        reason=reason,
        evaluation_time_ms=(time.perf_counter() - started) * 1000.0,
    )
