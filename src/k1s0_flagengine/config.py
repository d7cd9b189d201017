"""設定型定義（pydantic BaseModel）と YAML 読み込み"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError

from .exceptions import FlagEngineError, FlagEngineErrorCodes
from .http_client import ClientConfig


class AppSection(BaseModel):
    """アプリケーション基本設定。"""

    name: str = "flagengine"
    version: str = "0.1.0"
    environment: str = "development"


class LogSection(BaseModel):
    """ログ設定。"""

    level: str = "INFO"
    format: Literal["json", "text"] = "json"


class SeedSection(BaseModel):
    """初期投入フラグ設定。

    flags は API と同じ形式のフラグ定義（snake_case キー）。
    """

    builtin: bool = True
    flags: list[dict[str, Any]] = Field(default_factory=list)


class ClientSection(BaseModel):
    """フラグ API クライアント設定。"""

    base_url: str = "http://localhost:8080"
    api_key: str = ""
    timeout_seconds: float = Field(default=5.0, gt=0)
    poll_interval_seconds: float | None = Field(default=None, gt=0)

    def to_client_config(self) -> ClientConfig:
        return ClientConfig(
            base_url=self.base_url,
            api_key=self.api_key,
            timeout_seconds=self.timeout_seconds,
        )


class TelemetrySection(BaseModel):
    """評価メトリクス設定。"""

    enabled: bool = True
    meter_name: str = "k1s0_flagengine"


class FlagEngineConfig(BaseModel):
    """flagengine 設定全体。"""

    app: AppSection = Field(default_factory=AppSection)
    log: LogSection = Field(default_factory=LogSection)
    seed: SeedSection = Field(default_factory=SeedSection)
    client: ClientSection = Field(default_factory=ClientSection)
    telemetry: TelemetrySection = Field(default_factory=TelemetrySection)


# 環境別ファイルで要素単位に上書きできるリスト（ドット区切りパス -> 識別キー）
KEYED_LISTS: dict[str, str] = {"seed.flags": "id"}


def _item_key(item: Any, key: str) -> str | None:
    value = item.get(key) if isinstance(item, dict) else None
    return value if isinstance(value, str) else None


def _merge_keyed_list(base: list[Any], override: list[Any], key: str) -> list[Any]:
    merged: list[Any] = list(base)
    index = {k: i for i, item in enumerate(merged) if (k := _item_key(item, key)) is not None}
    for item in override:
        item_key = _item_key(item, key)
        if item_key is not None and item_key in index:
            merged[index[item_key]] = item
        else:
            merged.append(item)
    return merged


def deep_merge(
    base: dict[str, Any],
    override: dict[str, Any],
    keyed_lists: Mapping[str, str] | None = None,
    _path: str = "",
) -> dict[str, Any]:
    """base と override をディープマージして新しい辞書を返す。

    override の値が優先される。keyed_lists に含まれるパスのリストは
    識別キーが一致する要素を置換し、それ以外を末尾に追加する。
    その他のリストは丸ごと置換する。
    """
    keyed_lists = keyed_lists or {}
    result: dict[str, Any] = dict(base)
    for key, value in override.items():
        path = f"{_path}.{key}" if _path else key
        current = result.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            result[key] = deep_merge(current, value, keyed_lists, path)
        elif path in keyed_lists and isinstance(current, list) and isinstance(value, list):
            result[key] = _merge_keyed_list(current, value, keyed_lists[path])
        else:
            result[key] = value
    return result


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise FlagEngineError(
            code=FlagEngineErrorCodes.READ_FILE,
            message=f"Failed to read config file: {path}",
            cause=e,
        ) from e
    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise FlagEngineError(
            code=FlagEngineErrorCodes.PARSE_YAML,
            message=f"Failed to parse YAML: {path}",
            cause=e,
        ) from e
    if not isinstance(data, dict):
        raise FlagEngineError(
            code=FlagEngineErrorCodes.PARSE_YAML,
            message=f"Config root must be a mapping: {path}",
        )
    return data


def load_config(base_path: Path, env_path: Path | None = None) -> FlagEngineConfig:
    """設定ファイルを読み込んで FlagEngineConfig を返す。

    base_path: ベース設定ファイルパス（必須）
    env_path: 環境別設定ファイルパス（オプション）。存在する場合はベースにマージ。
    """
    data = _read_yaml(base_path)
    if env_path is not None and env_path.exists():
        data = deep_merge(data, _read_yaml(env_path), KEYED_LISTS)
    try:
        return FlagEngineConfig.model_validate(data)
    except ValidationError as e:
        raise FlagEngineError(
            code=FlagEngineErrorCodes.CONFIG_VALIDATION,
            message=f"Config validation failed: {e}",
            cause=e,
        ) from e
