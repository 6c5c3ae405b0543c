"""키-값 영속 저장소 — 비동기 get/set

저장소는 키 단위로만 원자적이다. 여러 키에 걸친 트랜잭션은 없다.
모든 구현은 일시 실패를 TransientStoreError로 올린다.
"""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone
from typing import Any, Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from src.core.errors import TransientStoreError
from src.core.logging import get_logger
from src.db.models import KeyValueModel

logger = get_logger(__name__)


def inventory_key(actor_id: int) -> str:
    return f"inventory:{actor_id}"


def earnings_key(seller_id: int) -> str:
    return f"earnings:{seller_id}"


LISTINGS_KEY = "market:listings"


class KeyValueStore(Protocol):
    async def get(self, key: str) -> Optional[Any]:
        """키가 없으면 None. 실패 시 TransientStoreError."""
        ...

    async def set(self, key: str, value: Any) -> None:
        """전체 덮어쓰기 (멱등). 실패 시 TransientStoreError."""
        ...


class MemoryStore:
    """프로세스 내 dict 저장소. JSON 직렬화를 거쳐 복사본을 보관한다."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    async def get(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        return None if raw is None else json.loads(raw)

    async def set(self, key: str, value: Any) -> None:
        try:
            self._data[key] = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise TransientStoreError(f"unserializable value for {key}: {e}") from e


class SqlKeyValueStore:
    """SQLAlchemy 테이블(kv_store) 기반 저장소.

    동기 세션 작업은 asyncio.to_thread로 이벤트 루프 밖에서 실행한다.
    호출마다 새 세션을 열고 닫는다.
    """

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    async def get(self, key: str) -> Optional[Any]:
        return await asyncio.to_thread(self._get_sync, key)

    async def set(self, key: str, value: Any) -> None:
        await asyncio.to_thread(self._set_sync, key, value)

    def ping(self) -> bool:
        """헬스 체크용. 조회 한 번 성공 여부."""
        try:
            self._get_sync("__ping__")
            return True
        except TransientStoreError:
            return False

    def _get_sync(self, key: str) -> Optional[Any]:
        session: Session = self._session_factory()
        try:
            row = session.get(KeyValueModel, key)
            return None if row is None else row.value
        except SQLAlchemyError as e:
            logger.warning("Store get failed for %s: %s", key, e)
            raise TransientStoreError(f"get {key} failed") from e
        finally:
            session.close()

    def _set_sync(self, key: str, value: Any) -> None:
        session: Session = self._session_factory()
        try:
            row = session.get(KeyValueModel, key)
            now = datetime.now(timezone.utc)
            if row is None:
                session.add(KeyValueModel(key=key, value=value, updated_at=now))
            else:
                row.value = value
                row.updated_at = now
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.warning("Store set failed for %s: %s", key, e)
            raise TransientStoreError(f"set {key} failed") from e
        finally:
            session.close()
