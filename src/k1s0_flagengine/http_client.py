"""フラグ API HTTP クライアント実装"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx

from .client import FeatureFlagClient
from .exceptions import (
    FlagEngineError,
    FlagEngineErrorCodes,
    InvalidFlagDefinitionError,
    MissingContextError,
)
from .models import EvaluationResult, FeatureFlag


@dataclass
class ClientConfig:
    """HTTP クライアント設定。"""

    base_url: str
    api_key: str = ""
    timeout_seconds: float = 5.0


class HttpFeatureFlagClient(FeatureFlagClient):
    """httpx を使ったフラグ API クライアント。"""

    def __init__(self, config: ClientConfig) -> None:
        self._config = config
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if config.api_key:
            headers["Authorization"] = f"Bearer {config.api_key}"
        self._headers = headers

    def _make_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._config.base_url,
            headers=self._headers,
            timeout=self._config.timeout_seconds,
        )

    def _handle_error(self, resp: httpx.Response, context: str) -> None:
        if resp.status_code == 400:
            raise InvalidFlagDefinitionError(
                field=_error_field(resp),
                message=f"{context}: {resp.text}",
            )
        if resp.status_code == 401:
            raise FlagEngineError(
                code=FlagEngineErrorCodes.UNAUTHORIZED,
                message=f"{context}: authentication required",
            )
        if resp.status_code == 403:
            raise FlagEngineError(
                code=FlagEngineErrorCodes.FORBIDDEN,
                message=f"{context}: admin privileges required",
            )
        if resp.status_code >= 400:
            raise FlagEngineError(
                code=FlagEngineErrorCodes.HTTP_ERROR,
                message=f"{context}: HTTP {resp.status_code}: {resp.text}",
            )

    async def evaluate(self, flag_id: str, user_id: str) -> EvaluationResult:
        if not user_id:
            raise MissingContextError()
        try:
            async with self._make_client() as client:
                resp = await client.get(
                    "/api/flags",
                    params={"evaluate": "1", "flag_id": flag_id, "user_id": user_id},
                )
            self._handle_error(resp, f"evaluate({flag_id})")
            data: dict[str, Any] = resp.json()
            return EvaluationResult.from_dict(data)
        except FlagEngineError:
            raise
        except Exception as e:
            raise FlagEngineError(
                code=FlagEngineErrorCodes.HTTP_ERROR,
                message=f"Failed to evaluate flag: {e}",
                cause=e,
            ) from e

    async def list_flags(self) -> list[FeatureFlag]:
        try:
            async with self._make_client() as client:
                resp = await client.get("/api/flags")
            self._handle_error(resp, "list_flags")
            data: list[dict[str, Any]] = resp.json()
            return [FeatureFlag.from_dict(f) for f in data]
        except FlagEngineError:
            raise
        except Exception as e:
            raise FlagEngineError(
                code=FlagEngineErrorCodes.HTTP_ERROR,
                message=f"Failed to list flags: {e}",
                cause=e,
            ) from e

    async def upsert_flag(self, flag: FeatureFlag) -> FeatureFlag:
        try:
            async with self._make_client() as client:
                resp = await client.post("/api/flags", json=flag.to_dict())
            self._handle_error(resp, f"upsert_flag({flag.id})")
            data: dict[str, Any] = resp.json()
            return FeatureFlag.from_dict(data)
        except FlagEngineError:
            raise
        except Exception as e:
            raise FlagEngineError(
                code=FlagEngineErrorCodes.HTTP_ERROR,
                message=f"Failed to upsert flag: {e}",
                cause=e,
            ) from e

    async def delete_flag(self, flag_id: str) -> bool:
        try:
            async with self._make_client() as client:
                resp = await client.delete(f"/api/flags/{flag_id}")
            self._handle_error(resp, f"delete_flag({flag_id})")
            data: dict[str, Any] = resp.json()
            return bool(data.get("deleted", False))
        except FlagEngineError:
            raise
        except Exception as e:
            raise FlagEngineError(
                code=FlagEngineErrorCodes.HTTP_ERROR,
                message=f"Failed to delete flag: {e}",
                cause=e,
            ) from e


def _error_field(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return "body"
    if isinstance(body, dict):
        return str(body.get("field", "body"))
    return "body"
