"""FeatureFlagClient 抽象基底クラスとインプロセス実装"""

from __future__ import annotations

from abc import ABC, abstractmethod

from .models import EvaluationContext, EvaluationResult, FeatureFlag
from .service import FeatureFlagService


class FeatureFlagClient(ABC):
    """フィーチャーフラグクライアント抽象基底クラス。"""

    @abstractmethod
    async def evaluate(self, flag_id: str, user_id: str) -> EvaluationResult:
        """フラグを評価する。"""
        ...

    @abstractmethod
    async def list_flags(self) -> list[FeatureFlag]:
        """フラグ一覧を取得する。"""
        ...

    @abstractmethod
    async def upsert_flag(self, flag: FeatureFlag) -> FeatureFlag:
        """フラグを作成または更新する。"""
        ...

    @abstractmethod
    async def delete_flag(self, flag_id: str) -> bool:
        """フラグを削除する。"""
        ...

    async def is_enabled(self, flag_id: str, user_id: str) -> bool:
        result = await self.evaluate(flag_id, user_id)
        return result.enabled


class LocalFeatureFlagClient(FeatureFlagClient):
    """FeatureFlagService を直接呼び出すインプロセスクライアント。"""

    def __init__(self, service: FeatureFlagService) -> None:
        self._service = service

    async def evaluate(self, flag_id: str, user_id: str) -> EvaluationResult:
        return self._service.evaluate(flag_id, EvaluationContext(user_id=user_id))

    async def list_flags(self) -> list[FeatureFlag]:
        return self._service.list()

    async def upsert_flag(self, flag: FeatureFlag) -> FeatureFlag:
        return self._service.upsert(flag)

    async def delete_flag(self, flag_id: str) -> bool:
        return self._service.delete(flag_id)
