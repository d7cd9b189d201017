"""flagengine データモデル"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any

from .exceptions import InvalidFlagDefinitionError
from .validation import validate_flag


class FlagStatus(StrEnum):
    """フラグの状態。全ての遷移が許可される。"""

    DISABLED = "disabled"
    ENABLED = "enabled"
    ROLLOUT = "rollout"
    EXPERIMENT = "experiment"


class RolloutType(StrEnum):
    """ロールアウト戦略の種別。"""

    PERCENTAGE = "percentage"
    USER_LIST = "user_list"
    USER_SEGMENT = "user_segment"


class EvaluationReason(StrEnum):
    """評価結果を生んだルール。"""

    DISABLED = "disabled"
    ROLLOUT_PERCENTAGE = "rollout_percentage"
    TARGETING_RULE = "targeting_rule"
    EXPERIMENT_VARIANT = "experiment_variant"
    USER_LIST = "user_list"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_enum(enum_cls: type[StrEnum], value: Any, field_name: str) -> Any:
    try:
        return enum_cls(value)
    except ValueError as e:
        raise InvalidFlagDefinitionError(
            field_name, f"{field_name}: unsupported value {value!r}", cause=e
        ) from e


def _parse_datetime(value: Any, field_name: str) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError as e:
        raise InvalidFlagDefinitionError(
            field_name, f"{field_name}: invalid ISO-8601 datetime {value!r}", cause=e
        ) from e


def _format_datetime(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_str_items(value: Any, field_name: str) -> tuple[str, ...]:
    """文字列の配列をタプルに変換する。None は空配列として扱う。

    文字列そのものは 1 文字ずつに分解されてしまうため配列として受け付けない。
    """
    if value is None:
        return ()
    if not isinstance(value, (list, tuple, set, frozenset)):
        raise InvalidFlagDefinitionError(
            field_name, f"{field_name}: must be an array of strings, got {type(value).__name__}"
        )
    for item in value:
        if not isinstance(item, str):
            raise InvalidFlagDefinitionError(
                field_name, f"{field_name}: items must be strings, got {item!r}"
            )
    return tuple(value)


def _parse_bool(value: Any, field_name: str, default: bool) -> bool:
    if value is None:
        return default
    if not isinstance(value, bool):
        raise InvalidFlagDefinitionError(
            field_name, f"{field_name}: must be a boolean, got {value!r}"
        )
    return value


def _parse_str(value: Any, field_name: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise InvalidFlagDefinitionError(field_name, f"{field_name}: must be a string, got {value!r}")
    return value


def _require_object(value: Any, field_name: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise InvalidFlagDefinitionError(
            field_name, f"{field_name}: must be a JSON object, got {type(value).__name__}"
        )
    return value


@dataclass(frozen=True)
class RolloutStrategy:
    """ロールアウト戦略。status が rollout の場合のみ参照される。"""

    type: RolloutType = RolloutType.PERCENTAGE
    percentage: float | None = None
    user_ids: tuple[str, ...] | None = None
    segment_rules: dict[str, bool] | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "type", _parse_enum(RolloutType, self.type, "rollout_strategy.type"))
        if self.user_ids is not None:
            object.__setattr__(
                self, "user_ids", _parse_str_items(self.user_ids, "rollout_strategy.user_ids")
            )
        if self.segment_rules is not None:
            _require_object(self.segment_rules, "rollout_strategy.segment_rules")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RolloutStrategy:
        """API 辞書から RolloutStrategy を生成する。"""
        _require_object(data, "rollout_strategy")
        return cls(
            type=data.get("type", RolloutType.PERCENTAGE),
            percentage=data.get("percentage"),
            user_ids=data.get("user_ids"),
            segment_rules=data.get("segment_rules"),
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": str(self.type)}
        if self.percentage is not None:
            data["percentage"] = self.percentage
        if self.user_ids is not None:
            data["user_ids"] = list(self.user_ids)
        if self.segment_rules is not None:
            data["segment_rules"] = dict(self.segment_rules)
        return data


@dataclass(frozen=True)
class TargetingRule:
    """ターゲティングルール。condition はエンジンでは解釈しない。"""

    name: str
    condition: str
    enabled: bool

    @classmethod
    def from_dict(cls, data: dict[str, Any], index: int = 0) -> TargetingRule:
        prefix = f"targeting_rules[{index}]"
        _require_object(data, prefix)
        return cls(
            name=_parse_str(data.get("name"), f"{prefix}.name"),
            condition=_parse_str(data.get("condition"), f"{prefix}.condition"),
            enabled=_parse_bool(data.get("enabled"), f"{prefix}.enabled", False),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "condition": self.condition, "enabled": self.enabled}


@dataclass(frozen=True)
class FeatureFlag:
    """フィーチャーフラグ。

    インスタンスは不変で、生成時に検証される。ストアは値を差し替えるだけで
    フィールドを書き換えることはない。
    """

    id: str
    name: str
    status: FlagStatus
    description: str = ""
    rollout_strategy: RolloutStrategy | None = None
    enabled_for_users: frozenset[str] = frozenset()
    disabled_for_users: frozenset[str] = frozenset()
    targeting_rules: tuple[TargetingRule, ...] = ()
    owner: str = ""
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)
    enabled_at: datetime | None = None
    disabled_at: datetime | None = None
    track_usage: bool = True
    track_performance: bool = False
    tags: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "status", _parse_enum(FlagStatus, self.status, "status"))
        for name in ("enabled_for_users", "disabled_for_users"):
            object.__setattr__(self, name, frozenset(_parse_str_items(getattr(self, name), name)))
        object.__setattr__(self, "targeting_rules", tuple(self.targeting_rules))
        object.__setattr__(self, "tags", _parse_str_items(self.tags, "tags"))
        validate_flag(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FeatureFlag:
        """API リクエスト辞書から FeatureFlag を生成する。

        Raises:
            InvalidFlagDefinitionError: 必須項目の欠落や検証違反がある場合
        """
        if not isinstance(data, dict):
            raise InvalidFlagDefinitionError("body", "flag definition must be a JSON object")
        for key in ("id", "name", "status"):
            if key not in data:
                raise InvalidFlagDefinitionError(key, f"{key}: field required")

        strategy = data.get("rollout_strategy")
        rules = data.get("targeting_rules")
        if rules is not None and not isinstance(rules, list):
            raise InvalidFlagDefinitionError(
                "targeting_rules", f"targeting_rules: must be an array, got {type(rules).__name__}"
            )

        now = _utcnow()
        return cls(
            id=data["id"],
            name=data["name"],
            status=data["status"],
            description=_parse_str(data.get("description"), "description"),
            rollout_strategy=RolloutStrategy.from_dict(strategy) if strategy is not None else None,
            enabled_for_users=_parse_str_items(data.get("enabled_for_users"), "enabled_for_users"),
            disabled_for_users=_parse_str_items(data.get("disabled_for_users"), "disabled_for_users"),
            targeting_rules=tuple(TargetingRule.from_dict(r, i) for i, r in enumerate(rules or [])),
            owner=_parse_str(data.get("owner"), "owner"),
            created_at=_parse_datetime(data.get("created_at"), "created_at") or now,
            updated_at=_parse_datetime(data.get("updated_at"), "updated_at") or now,
            enabled_at=_parse_datetime(data.get("enabled_at"), "enabled_at"),
            disabled_at=_parse_datetime(data.get("disabled_at"), "disabled_at"),
            track_usage=_parse_bool(data.get("track_usage"), "track_usage", True),
            track_performance=_parse_bool(data.get("track_performance"), "track_performance", False),
            tags=_parse_str_items(data.get("tags"), "tags"),
        )

    def to_dict(self) -> dict[str, Any]:
        """API レスポンス用の辞書に変換する。"""
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "status": str(self.status),
            "enabled_for_users": sorted(self.enabled_for_users),
            "disabled_for_users": sorted(self.disabled_for_users),
            "targeting_rules": [r.to_dict() for r in self.targeting_rules],
            "owner": self.owner,
            "created_at": _format_datetime(self.created_at),
            "updated_at": _format_datetime(self.updated_at),
            "track_usage": self.track_usage,
            "track_performance": self.track_performance,
            "tags": list(self.tags),
        }
        if self.rollout_strategy is not None:
            data["rollout_strategy"] = self.rollout_strategy.to_dict()
        if self.enabled_at is not None:
            data["enabled_at"] = _format_datetime(self.enabled_at)
        if self.disabled_at is not None:
            data["disabled_at"] = _format_datetime(self.disabled_at)
        return data


@dataclass
class EvaluationContext:
    """フラグ評価コンテキスト。"""

    user_id: str
    organization_id: str | None = None
    email: str | None = None
    traits: dict[str, Any] = field(default_factory=dict)
    custom_properties: dict[str, Any] = field(default_factory=dict)


@dataclass
class EvaluationResult:
    """フラグ評価結果。"""

    flag_id: str
    enabled: bool
    reason: EvaluationReason
    variant: str | None = None
    evaluation_time_ms: float | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EvaluationResult:
        """API レスポンス辞書から EvaluationResult を生成する。"""
        return cls(
            flag_id=data["flag_id"],
            enabled=bool(data["enabled"]),
            reason=EvaluationReason(data.get("reason", EvaluationReason.DISABLED)),
            variant=data.get("variant"),
            evaluation_time_ms=data.get("evaluation_time_ms"),
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "flag_id": self.flag_id,
            "enabled": self.enabled,
            "reason": str(self.reason),
        }
        if self.variant is not None:
            data["variant"] = self.variant
        if self.evaluation_time_ms is not None:
            data["evaluation_time_ms"] = self.evaluation_time_ms
        return data
