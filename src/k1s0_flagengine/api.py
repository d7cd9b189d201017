"""トランスポート非依存のフラグ API ハンドラ

ネットワーク層は以下の契約でこのハンドラを呼び出す。

- ``GET /api/flags?evaluate=1&flag_id=<id>&user_id=<id>``: フラグ評価
- ``GET /api/flags``: フラグ一覧
- ``POST /api/flags``: フラグ作成・更新（管理者のみ）
- ``DELETE /api/flags/{id}``: フラグ削除（管理者のみ）
"""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol

import structlog

from .exceptions import InvalidFlagDefinitionError
from .models import EvaluationContext, FeatureFlag
from .service import FeatureFlagService

logger = structlog.stdlib.get_logger(__name__)

FLAGS_PATH = "/api/flags"


class AdminAuthorizer(Protocol):
    """管理者権限を判定するプロトコル。"""

    def is_admin(self, principal: str) -> bool: ...


@dataclass
class ApiResponse:
    """API レスポンス。"""

    status_code: int
    body: Any


def _error(status_code: int, message: str, **extra: Any) -> ApiResponse:
    return ApiResponse(status_code=status_code, body={"error": message, **extra})


class FlagApi:
    """FeatureFlagService をリクエスト/レスポンス契約として公開する。

    authorizer が未設定の場合、書き込み操作は認可なしで受け付ける。
    """

    def __init__(
        self,
        service: FeatureFlagService,
        *,
        authorizer: AdminAuthorizer | None = None,
    ) -> None:
        self._service = service
        self._authorizer = authorizer

    def evaluate(self, params: Mapping[str, str]) -> ApiResponse:
        flag_id = params.get("flag_id")
        user_id = params.get("user_id")
        if not flag_id or not user_id:
            return _error(400, "Missing flag_id or user_id")
        result = self._service.evaluate(flag_id, EvaluationContext(user_id=user_id))
        return ApiResponse(status_code=200, body=result.to_dict())

    def list_flags(self) -> ApiResponse:
        return ApiResponse(status_code=200, body=[f.to_dict() for f in self._service.list()])

    def upsert(self, body: Any, principal: str | None = None) -> ApiResponse:
        denied = self._authorize(principal)
        if denied is not None:
            return denied
        if isinstance(body, (str, bytes)):
            # JSONDecodeError と UnicodeDecodeError はどちらも ValueError
            try:
                body = json.loads(body)
            except ValueError:
                return _error(400, "Request body is not valid JSON")
        try:
            flag = FeatureFlag.from_dict(body)
        except InvalidFlagDefinitionError as e:
            logger.warning("flag definition rejected", field=e.field, error=str(e))
            return _error(400, str(e), field=e.field)
        stored = self._service.upsert(flag)
        return ApiResponse(status_code=200, body=stored.to_dict())

    def delete(self, flag_id: str, principal: str | None = None) -> ApiResponse:
        denied = self._authorize(principal)
        if denied is not None:
            return denied
        return ApiResponse(status_code=200, body={"deleted": self._service.delete(flag_id)})

    def handle(
        self,
        method: str,
        path: str,
        params: Mapping[str, str] | None = None,
        body: Any = None,
        principal: str | None = None,
    ) -> ApiResponse:
        """メソッドとパスでルーティングする。想定外の例外は 500 に変換する。"""
        method = method.upper()
        path = path.rstrip("/")
        params = params or {}

        if path == FLAGS_PATH:
            if method == "GET":
                return self._guard(
                    "Failed to fetch flags",
                    lambda: self.evaluate(params) if "evaluate" in params else self.list_flags(),
                )
            if method == "POST":
                return self._guard("Failed to update flag", lambda: self.upsert(body, principal))
            return _error(405, f"Method not allowed: {method}")

        prefix = FLAGS_PATH + "/"
        if path.startswith(prefix) and len(path) > len(prefix):
            if method == "DELETE":
                flag_id = path[len(prefix):]
                return self._guard("Failed to delete flag", lambda: self.delete(flag_id, principal))
            return _error(405, f"Method not allowed: {method}")

        return _error(404, f"Not found: {path}")

    def _authorize(self, principal: str | None) -> ApiResponse | None:
        if self._authorizer is None:
            return None
        if not principal:
            return _error(401, "Authentication required")
        if not self._authorizer.is_admin(principal):
            logger.warning("admin write denied", principal=principal)
            return _error(403, "Admin privileges required")
        return None

    def _guard(self, message: str, call: Callable[[], ApiResponse]) -> ApiResponse:
        try:
            return call()
        except Exception:
            logger.exception(message)
            return _error(500, message)
