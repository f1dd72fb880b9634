"""
BaseRepository -- 모든 Repository의 기반 클래스
"""

import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Union

from fbt.infrastructure.database.connection import get_connection
from fbt.utils.logger import get_logger

logger = get_logger(__name__)


class BaseRepository:
    """기본 저장소 클래스

    Usage:
        class AssociationRepository(BaseRepository):
            ...

        repo = AssociationRepository(db_path=tmp_path / "test.db")
        conn = repo._get_conn()
    """

    def __init__(self, db_path: Optional[Union[str, Path]] = None):
        """초기화

        Args:
            db_path: 직접 DB 경로 지정 (테스트용). 없으면 기본 DB.
        """
        self._db_path = Path(db_path) if db_path else None

        if self._db_path and not self._db_path.exists():
            from fbt.infrastructure.database.schema import init_db
            init_db(self._db_path)

    def _get_conn(self) -> sqlite3.Connection:
        return get_connection(self._db_path)

    def _now(self) -> str:
        """현재 시각 ISO 포맷"""
        return datetime.now().isoformat()

    def _to_int(self, value: Any) -> int:
        """값을 정수로 변환"""
        if value is None or value == "":
            return 0
        try:
            return int(value)
        except (ValueError, TypeError):
            return 0

    def _to_float(self, value: Any) -> Optional[float]:
        """값을 실수로 변환"""
        if value is None or value == "":
            return None
        try:
            if isinstance(value, str):
                value = value.replace(",", "")
            return float(value)
        except (ValueError, TypeError):
            return None

    def _to_datetime(self, value: Any) -> Optional[datetime]:
        """ISO 문자열을 datetime으로 변환 (오프셋이 있으면 로컬 naive 시각으로)"""
        if value is None or value == "":
            return None
        if not isinstance(value, datetime):
            try:
                value = datetime.fromisoformat(str(value))
            except ValueError:
                return None
        return self._to_local_naive(value)

    @staticmethod
    def _to_local_naive(value: datetime) -> datetime:
        """타임존 정보가 있는 시각을 로컬 naive 시각으로 변환

        실행 시계(datetime.now)는 naive 로컬 시각이므로 저장·조회 시각도 맞춘다.
        """
        if value.tzinfo is None:
            return value
        return value.astimezone().replace(tzinfo=None)
