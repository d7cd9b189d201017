"""Flag definition validation rules."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .exceptions import InvalidFlagDefinitionError

if TYPE_CHECKING:
    from .models import FeatureFlag, RolloutStrategy, TargetingRule

MIN_NAME_LENGTH = 3
MIN_PERCENTAGE = 0
MAX_PERCENTAGE = 100


def validate_flag_id(flag_id: str) -> None:
    """Validate that the flag id is a non-empty string."""
    if not isinstance(flag_id, str) or not flag_id.strip():
        raise InvalidFlagDefinitionError("id", "id must be a non-empty string")


def validate_name(name: str) -> None:
    """Validate name length (at least 3 characters)."""
    if not isinstance(name, str) or len(name) < MIN_NAME_LENGTH:
        raise InvalidFlagDefinitionError(
            "name",
            f"name must be at least {MIN_NAME_LENGTH} characters, got {name!r}",
        )


def validate_rollout_strategy(strategy: RolloutStrategy) -> None:
    """Validate the rollout percentage range (0-100 inclusive)."""
    percentage = strategy.percentage
    if percentage is None:
        return
    if isinstance(percentage, bool) or not isinstance(percentage, (int, float)):
        raise InvalidFlagDefinitionError(
            "rollout_strategy.percentage",
            f"percentage must be a number, got {percentage!r}",
        )
    if not MIN_PERCENTAGE <= percentage <= MAX_PERCENTAGE:
        raise InvalidFlagDefinitionError(
            "rollout_strategy.percentage",
            f"percentage must be {MIN_PERCENTAGE}-{MAX_PERCENTAGE}, got {percentage}",
        )


def validate_targeting_rules(rules: tuple[TargetingRule, ...]) -> None:
    """Validate that every targeting rule carries a name and a condition."""
    for index, rule in enumerate(rules):
        if not rule.name:
            raise InvalidFlagDefinitionError(
                f"targeting_rules[{index}].name", "targeting rule name is required"
            )
        if not rule.condition:
            raise InvalidFlagDefinitionError(
                f"targeting_rules[{index}].condition",
                f"targeting rule {rule.name!r} has no condition",
            )


def validate_flag(flag: FeatureFlag) -> None:
    """Validate a whole flag definition. Raises on the first violation."""
    validate_flag_id(flag.id)
    validate_name(flag.name)
    if flag.rollout_strategy is not None:
        validate_rollout_strategy(flag.rollout_strategy)
    validate_targeting_rules(flag.targeting_rules)
