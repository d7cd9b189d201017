"""FlagStore 抽象基底クラスとインメモリ実装"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections.abc import Iterable

import structlog

from .models import FeatureFlag
from .validation import validate_flag

logger = structlog.stdlib.get_logger(__name__)


class FlagStore(ABC):
    """フラグストア抽象基底クラス。

    永続化バックエンドは同じ契約で差し替える。
    """

    @abstractmethod
    def get(self, flag_id: str) -> FeatureFlag | None:
        """フラグを取得する。存在しなければ None。"""
        ...

    @abstractmethod
    def list(self) -> list[FeatureFlag]:
        """全フラグを返す。順序は保証しない。"""
        ...

    @abstractmethod
    def upsert(self, flag: FeatureFlag) -> FeatureFlag:
        """フラグを検証して作成または置換する。検証失敗時は既存エントリを変更しない。"""
        ...

    @abstractmethod
    def delete(self, flag_id: str) -> bool:
        """フラグを削除する。削除できたら True。"""
        ...

    @abstractmethod
    def seed(self, flags: Iterable[FeatureFlag]) -> int:
        """初期フラグを投入する。ストアの生存期間で一度だけ有効で、既存 ID は上書きしない。

        Returns:
            追加したフラグ数（2 回目以降は常に 0）
        """
        ...


class InMemoryFlagStore(FlagStore):
    """インメモリフラグストア。

    エントリは不変の FeatureFlag をロック下で丸ごと差し替えるため、
    読み取り側が書きかけのフラグを観測することはない。
    """

    def __init__(self, seed: Iterable[FeatureFlag] | None = None) -> None:
        self._flags: dict[str, FeatureFlag] = {}
        self._lock = threading.Lock()
        self._seeded = False
        if seed is not None:
            self.seed(seed)

    def get(self, flag_id: str) -> FeatureFlag | None:
        return self._flags.get(flag_id)

    def list(self) -> list[FeatureFlag]:
        return list(self._flags.values())

    def upsert(self, flag: FeatureFlag) -> FeatureFlag:
        validate_flag(flag)
        with self._lock:
            replaced = flag.id in self._flags
            self._flags[flag.id] = flag
        logger.info("flag upserted", flag_id=flag.id, status=str(flag.status), replaced=replaced)
        return flag

    def delete(self, flag_id: str) -> bool:
        with self._lock:
            removed = self._flags.pop(flag_id, None) is not None
        if removed:
            logger.info("flag deleted", flag_id=flag_id)
        return removed

    def seed(self, flags: Iterable[FeatureFlag]) -> int:
        pending = list(flags)
        for flag in pending:
            validate_flag(flag)
        with self._lock:
            if self._seeded:
                return 0
            self._seeded = True
            added = 0
            for flag in pending:
                if flag.id not in self._flags:
                    self._flags[flag.id] = flag
                    added += 1
        return added

    def __len__(self) -> int:
        return len(self._flags)

    def __contains__(self, flag_id: object) -> bool:
        return flag_id in self._flags
