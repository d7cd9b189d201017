"""評価アルゴリズムのユニットテスト"""

import uuid

import pytest
from k1s0_flagengine import (
    EvaluationContext,
    EvaluationReason,
    FeatureFlag,
    FlagStatus,
    MissingContextError,
    RolloutStrategy,
    RolloutType,
    TargetingRule,
    evaluate,
)
from k1s0_flagengine.bucketing import bucket_for
from k1s0_flagengine.exceptions import FlagEngineErrorCodes


def make_flag(status: FlagStatus, **kwargs: object) -> FeatureFlag:
    return FeatureFlag(id="test-flag", name="Test Flag", status=status, **kwargs)


def percentage_flag(percentage: float, **kwargs: object) -> FeatureFlag:
    return make_flag(
        FlagStatus.ROLLOUT,
        rollout_strategy=RolloutStrategy(type=RolloutType.PERCENTAGE, percentage=percentage),
        **kwargs,
    )


def synthetic_user_ids(count: int) -> list[str]:
    return [str(uuid.uuid5(uuid.NAMESPACE_URL, f"user-{i}")) for i in range(count)]


class StaticConditionResolver:
    def __init__(self, matching: set[str]) -> None:
        self.matching = matching

    def evaluate(self, condition: str, context: EvaluationContext) -> bool:
        return condition in self.matching


class TraitSegmentResolver:
    def matches(self, segment_rules: dict[str, bool], context: EvaluationContext) -> bool:
        return all(bool(context.traits.get(k)) == v for k, v in segment_rules.items())


def test_disabled_status() -> None:
    """disabled のフラグは無効。"""
    result = evaluate(make_flag(FlagStatus.DISABLED), EvaluationContext(user_id="u1"))
    assert result.enabled is False
    assert result.reason == EvaluationReason.DISABLED
    assert result.flag_id == "test-flag"
    assert result.variant is None


def test_disabled_status_wins_over_enabled_users() -> None:
    """disabled は enabled_for_users より優先される。"""
    flag = make_flag(FlagStatus.DISABLED, enabled_for_users={"u1"})
    assert evaluate(flag, EvaluationContext(user_id="u1")).enabled is False


def test_disabled_for_users_wins_over_enabled_status() -> None:
    """disabled_for_users は status=enabled より優先される。"""
    flag = make_flag(FlagStatus.ENABLED, disabled_for_users={"u1"})
    result = evaluate(flag, EvaluationContext(user_id="u1"))
    assert result.enabled is False
    assert result.reason == EvaluationReason.TARGETING_RULE


def test_disabled_for_users_wins_over_enabled_for_users() -> None:
    """両方に含まれる場合は無効。"""
    flag = make_flag(FlagStatus.ENABLED, enabled_for_users={"u1"}, disabled_for_users={"u1"})
    assert evaluate(flag, EvaluationContext(user_id="u1")).enabled is False


def test_enabled_for_users_overrides_zero_percent_rollout() -> None:
    """enabled_for_users は 0% ロールアウトより優先される。"""
    flag = percentage_flag(0, enabled_for_users={"u1"})
    result = evaluate(flag, EvaluationContext(user_id="u1"))
    assert result.enabled is True
    assert result.reason == EvaluationReason.USER_LIST


def test_enabled_status_reports_disabled_reason() -> None:
    """enabled の理由は既存互換で "disabled" になること。"""
    result = evaluate(make_flag(FlagStatus.ENABLED), EvaluationContext(user_id="anyone"))
    assert result.enabled is True
    assert result.reason == EvaluationReason.DISABLED


def test_percentage_rollout_follows_bucket() -> None:
    """パーセンテージロールアウトはバケットで判定される。"""
    for user_id in synthetic_user_ids(200):
        result = evaluate(percentage_flag(30), EvaluationContext(user_id=user_id))
        assert result.enabled is (bucket_for(user_id) < 30)
        assert result.reason == EvaluationReason.ROLLOUT_PERCENTAGE


def test_percentage_zero_and_hundred() -> None:
    """0% は全員無効、100% は全員有効。"""
    for user_id in synthetic_user_ids(200):
        ctx = EvaluationContext(user_id=user_id)
        assert evaluate(percentage_flag(0), ctx).enabled is False
        assert evaluate(percentage_flag(100), ctx).enabled is True


def test_percentage_rollout_is_deterministic() -> None:
    """同じ user_id の結果は繰り返しても変わらない。"""
    flag = percentage_flag(50)
    for user_id in synthetic_user_ids(100):
        first = evaluate(flag, EvaluationContext(user_id=user_id)).enabled
        for _ in range(3):
            assert evaluate(flag, EvaluationContext(user_id=user_id)).enabled is first


def test_percentage_rollout_is_monotonic() -> None:
    """percentage を上げても有効だったユーザーは無効にならない。"""
    users = synthetic_user_ids(500)
    previous = {u for u in users if evaluate(percentage_flag(0), EvaluationContext(user_id=u)).enabled}
    for percentage in range(5, 101, 5):
        current = {
            u for u in users if evaluate(percentage_flag(percentage), EvaluationContext(user_id=u)).enabled
        }
        assert previous <= current
        previous = current


def test_fifty_percent_rollout_distribution() -> None:
    """50% ロールアウトを 10,000 ユーザーで評価すると 45%〜55% が有効。"""
    flag = FeatureFlag(
        id="scenario-analysis",
        name="Scenario Analysis",
        status=FlagStatus.ROLLOUT,
        rollout_strategy=RolloutStrategy(type=RolloutType.PERCENTAGE, percentage=50),
    )
    users = synthetic_user_ids(10_000)
    enabled = sum(1 for u in users if evaluate(flag, EvaluationContext(user_id=u)).enabled)
    assert 0.45 <= enabled / len(users) <= 0.55


def test_user_list_rollout() -> None:
    """user_list 戦略はリストに含まれるユーザーのみ有効。"""
    flag = make_flag(
        FlagStatus.ROLLOUT,
        rollout_strategy=RolloutStrategy(type=RolloutType.USER_LIST, user_ids=("u1", "u2")),
    )
    included = evaluate(flag, EvaluationContext(user_id="u1"))
    excluded = evaluate(flag, EvaluationContext(user_id="u3"))
    assert included.enabled is True
    assert included.reason == EvaluationReason.USER_LIST
    assert excluded.enabled is False
    assert excluded.reason == EvaluationReason.USER_LIST


def test_rollout_without_strategy_falls_back_to_disabled() -> None:
    """戦略の無い rollout はエラーにならず無効。"""
    result = evaluate(make_flag(FlagStatus.ROLLOUT), EvaluationContext(user_id="u1"))
    assert result.enabled is False
    assert result.reason == EvaluationReason.DISABLED


def test_percentage_strategy_without_percentage_is_disabled() -> None:
    """percentage 未設定の percentage 戦略は無効。"""
    flag = make_flag(FlagStatus.ROLLOUT, rollout_strategy=RolloutStrategy())
    assert evaluate(flag, EvaluationContext(user_id="u1")).reason == EvaluationReason.DISABLED


def test_strategy_ignored_when_status_is_not_rollout() -> None:
    """rollout 以外では戦略を参照しない。"""
    flag = make_flag(
        FlagStatus.EXPERIMENT,
        rollout_strategy=RolloutStrategy(type=RolloutType.PERCENTAGE, percentage=100),
    )
    result = evaluate(flag, EvaluationContext(user_id="u1"))
    assert result.enabled is False
    assert result.reason == EvaluationReason.DISABLED


def test_user_segment_without_resolver_is_disabled() -> None:
    """セグメント判定器が無い場合 user_segment は無効。"""
    flag = make_flag(
        FlagStatus.ROLLOUT,
        rollout_strategy=RolloutStrategy(type=RolloutType.USER_SEGMENT, segment_rules={"beta": True}),
    )
    result = evaluate(flag, EvaluationContext(user_id="u1", traits={"beta": True}))
    assert result.enabled is False
    assert result.reason == EvaluationReason.DISABLED


def test_user_segment_with_resolver() -> None:
    """セグメント判定器がある場合はその結果に従う。"""
    flag = make_flag(
        FlagStatus.ROLLOUT,
        rollout_strategy=RolloutStrategy(type=RolloutType.USER_SEGMENT, segment_rules={"beta": True}),
    )
    resolver = TraitSegmentResolver()
    member = evaluate(flag, EvaluationContext(user_id="u1", traits={"beta": True}), segment_resolver=resolver)
    other = evaluate(flag, EvaluationContext(user_id="u2"), segment_resolver=resolver)
    assert member.enabled is True
    assert member.reason == EvaluationReason.TARGETING_RULE
    assert other.enabled is False


def test_targeting_rules_ignored_without_resolver() -> None:
    """condition 解釈器が無い場合ターゲティングルールは参照しない。"""
    flag = make_flag(
        FlagStatus.ENABLED,
        targeting_rules=[TargetingRule(name="block", condition="always", enabled=False)],
    )
    assert evaluate(flag, EvaluationContext(user_id="u1")).enabled is True


def test_first_matching_targeting_rule_wins() -> None:
    """最初に一致したルールの enabled が採用される。"""
    flag = make_flag(
        FlagStatus.ENABLED,
        targeting_rules=[
            TargetingRule(name="never", condition="no-match", enabled=True),
            TargetingRule(name="block", condition="internal", enabled=False),
            TargetingRule(name="allow", condition="internal", enabled=True),
        ],
    )
    result = evaluate(
        flag,
        EvaluationContext(user_id="u1"),
        condition_resolver=StaticConditionResolver({"internal"}),
    )
    assert result.enabled is False
    assert result.reason == EvaluationReason.TARGETING_RULE


def test_targeting_rules_do_not_override_disabled_status() -> None:
    """disabled のフラグはルールが一致しても無効。"""
    flag = make_flag(
        FlagStatus.DISABLED,
        targeting_rules=[TargetingRule(name="allow", condition="internal", enabled=True)],
    )
    result = evaluate(
        flag,
        EvaluationContext(user_id="u1"),
        condition_resolver=StaticConditionResolver({"internal"}),
    )
    assert result.enabled is False
    assert result.reason == EvaluationReason.DISABLED


@pytest.mark.parametrize("user_id", ["", None])
def test_missing_user_id_raises(user_id: str | None) -> None:
    """user_id が空の場合は MissingContextError。"""
    with pytest.raises(MissingContextError) as exc_info:
        evaluate(make_flag(FlagStatus.ENABLED), EvaluationContext(user_id=user_id))  # type: ignore[arg-type]
    assert exc_info.value.code == FlagEngineErrorCodes.MISSING_CONTEXT


def test_evaluation_time_is_measured() -> None:
    """評価時間が記録されること。"""
    result = evaluate(make_flag(FlagStatus.ENABLED), EvaluationContext(user_id="u1"))
    assert result.evaluation_time_ms is not None
    assert result.evaluation_time_ms >= 0
