"""
DB 커넥션 헬퍼

주문·상품·연관·설정 테이블은 하나의 SQLite 파일에 있다.
기본 경로는 fbt.settings.app_config.DB_PATH (FBT_DB_PATH로 재지정).
"""

import sqlite3
from pathlib import Path
from typing import Optional, Union

from fbt.settings.app_config import DB_PATH, DB_TIMEOUT_SECONDS
from fbt.utils.logger import get_logger

logger = get_logger(__name__)


def get_db_path(db_path: Optional[Union[str, Path]] = None) -> Path:
    """DB 파일 경로 반환 (상위 디렉토리 생성)"""
    path = Path(db_path) if db_path else DB_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def get_connection(db_path: Optional[Union[str, Path]] = None) -> sqlite3.Connection:
    """DB 연결 반환

    Args:
        db_path: DB 파일 경로 (기본값: DB_PATH)

    Returns:
        Row 팩토리가 설정된 SQLite 연결 객체
    """
    conn = sqlite3.connect(str(get_db_path(db_path)), timeout=DB_TIMEOUT_SECONDS)
    conn.row_factory = sqlite3.Row
    return conn
