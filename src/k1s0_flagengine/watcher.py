"""FeatureFlagWatcher: クライアント側のリアクティブなフラグ評価ラッパー"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

import structlog

from .client import FeatureFlagClient

logger = structlog.stdlib.get_logger(__name__)

T = TypeVar("T")
F = TypeVar("F")


@dataclass(frozen=True)
class FlagState:
    """呼び出し側に公開する評価状態。

    loading 中は enabled が None。失敗時は enabled=False で error を持つ。
    """

    enabled: bool | None = None
    loading: bool = True
    error: str | None = None


Listener = Callable[[FlagState], None]


class FeatureFlagWatcher:
    """(flag_id, user_id) の評価結果を保持し、入力変更時に再評価する。

    新しい評価が始まると実行中の評価はキャンセルされ、
    遅れて届いた古い入力の結果は破棄される。
    """

    def __init__(
        self,
        client: FeatureFlagClient,
        flag_id: str,
        user_id: str,
        *,
        poll_interval: float | None = None,
    ) -> None:
        self._client = client
        self._flag_id = flag_id
        self._user_id = user_id
        self._poll_interval = poll_interval
        self._state = FlagState()
        self._listeners: list[Listener] = []
        self._generation = 0
        self._task: asyncio.Task[None] | None = None
        self._poll_task: asyncio.Task[None] | None = None
        self._started = False

    @property
    def state(self) -> FlagState:
        return self._state

    @property
    def flag_id(self) -> str:
        return self._flag_id

    @property
    def user_id(self) -> str:
        return self._user_id

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """状態変更を購読する。戻り値を呼ぶと購読を解除する。"""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self._listeners.remove(listener)

        return unsubscribe

    def start(self) -> None:
        """最初の評価を開始する。実行中のイベントループ内で呼び出すこと。"""
        if self._started:
            return
        self._started = True
        self._schedule(reset=True)
        if self._poll_interval is not None and self._poll_interval > 0:
            self._poll_task = asyncio.create_task(self._poll_loop(self._poll_interval))

    def update(self, flag_id: str | None = None, user_id: str | None = None) -> bool:
        """入力を変更する。flag_id か user_id が変わった場合のみ再評価し True を返す。"""
        new_flag_id = self._flag_id if flag_id is None else flag_id
        new_user_id = self._user_id if user_id is None else user_id
        if (new_flag_id, new_user_id) == (self._flag_id, self._user_id):
            return False
        self._flag_id = new_flag_id
        self._user_id = new_user_id
        if self._started:
            self._schedule(reset=True)
        return True

    def refresh(self) -> None:
        """現在の入力で再評価する。直前の結果は新しい結果が届くまで保持する。"""
        if self._started:
            self._schedule(reset=False)

    async def wait(self) -> FlagState:
        """実行中の評価が完了するまで待ち、最新の状態を返す。"""
        while self._task is not None and not self._task.done():
            await asyncio.wait({self._task})
        return self._state

    async def close(self) -> None:
        """実行中の評価とポーリングを停止する。"""
        self._started = False
        self._generation += 1
        for task in (self._task, self._poll_task):
            if task is not None and not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        self._task = None
        self._poll_task = None

    async def __aenter__(self) -> FeatureFlagWatcher:
        self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def _schedule(self, *, reset: bool) -> None:
        self._generation += 1
        if self._task is not None and not self._task.done():
            self._task.cancel()
        if reset:
            self._set_state(FlagState())
        self._task = asyncio.create_task(
            self._run(self._generation, self._flag_id, self._user_id)
        )

    async def _run(self, generation: int, flag_id: str, user_id: str) -> None:
        try:
            result = await self._client.evaluate(flag_id, user_id)
        except Exception as e:
            if generation != self._generation:
                return
            logger.warning("flag evaluation failed", flag_id=flag_id, user_id=user_id, error=str(e))
            self._set_state(FlagState(enabled=False, loading=False, error=str(e)))
            return
        if generation != self._generation:
            logger.debug("stale flag evaluation discarded", flag_id=flag_id, user_id=user_id)
            return
        self._set_state(FlagState(enabled=result.enabled, loading=False, error=None))

    async def _poll_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            self.refresh()

    def _set_state(self, state: FlagState) -> None:
        if state == self._state:
            return
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("flag state listener failed", flag_id=self._flag_id)


class FeatureFlagGuard:
    """評価結果に応じて表示内容を選択するガード。"""

    def __init__(self, watcher: FeatureFlagWatcher) -> None:
        self._watcher = watcher

    def render(self, children: T, fallback: F | None = None) -> T | F | None:
        """loading 中は None、有効なら children、それ以外は fallback を返す。"""
        state = self._watcher.state
        if state.loading:
            return None
        if state.enabled is True:
            return children
        return fallback
