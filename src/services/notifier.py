"""클라이언트 알림 채널 — 전송 방식과 무관한 인터페이스

fire-and-forget. 전달 실패는 호출자가 로그만 남기고 재시도하지 않는다.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Any, Protocol

from src.core.errors import GameError
from src.core.logging import get_logger

logger = get_logger(__name__)


class NotificationKind:
    INVENTORY = "inventory"  # 인벤토리 전체 스냅샷
    STATUS = "status"  # 짧은 상태 문자열
    LISTINGS = "listings"  # 카테고리 조회 결과
    UI = "ui"  # 접속 시 UI 골격


@dataclass
class Notification:
    kind: str
    payload: Any
    data: dict[str, Any] = field(default_factory=dict)


class DeliveryError(GameError):
    code = "DeliveryError"


class NotificationChannel(Protocol):
    def send(self, actor_id: int, notification: Notification) -> None:
        """전달 실패 시 DeliveryError."""
        ...


class OutboxChannel:
    """액터별 bounded deque. HTTP 계층이 폴링으로 비운다.

    open()된 액터에게만 보낼 수 있다. 가득 차면 오래된 알림부터 밀려난다.
    """

    def __init__(self, max_size: int = 100) -> None:
        self._max_size = max_size
        self._outboxes: dict[int, deque[Notification]] = {}

    def open(self, actor_id: int) -> None:
        self._outboxes.setdefault(actor_id, deque(maxlen=self._max_size))

    def close(self, actor_id: int) -> None:
        self._outboxes.pop(actor_id, None)

    def is_open(self, actor_id: int) -> bool:
        return actor_id in self._outboxes

    def send(self, actor_id: int, notification: Notification) -> None:
        outbox = self._outboxes.get(actor_id)
        if outbox is None:
            raise DeliveryError(f"No open channel for actor {actor_id}")
        outbox.append(notification)

    def drain(self, actor_id: int) -> list[Notification]:
        outbox = self._outboxes.get(actor_id)
        if outbox is None:
            return []
        drained = list(outbox)
        outbox.clear()
        return drained


def send_status(channel: NotificationChannel, actor_id: int, message: str) -> None:
    """상태 문자열 전송. 실패는 경고 로그만."""
    try:
        channel.send(actor_id, Notification(NotificationKind.STATUS, message))
    except Exception as e:
        logger.warning("Failed to send status to actor %s: %s", actor_id, e)
