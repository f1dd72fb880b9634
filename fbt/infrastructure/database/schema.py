"""
DB 스키마 정의

- orders / order_lines / products: 주문 원천 데이터 (읽기 전용으로 사용)
- product_associations: 채널별 연관 테이블 (실행마다 전체 교체)
- association_settings: 단일 행 설정 (id = 1)
"""

import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from fbt.infrastructure.database.connection import get_db_path
from fbt.utils.logger import get_logger

logger = get_logger(__name__)

SCHEMA_VERSION = 1


SCHEMA = [
    # schema_version
    """CREATE TABLE IF NOT EXISTS schema_version (
        version INTEGER PRIMARY KEY,
        applied_at TEXT NOT NULL
    )""",

    # products (번들 여부, 관련상품 폴백 목록)
    """CREATE TABLE IF NOT EXISTS products (
        product_id TEXT PRIMARY KEY,
        product_name TEXT,
        enabled INTEGER NOT NULL DEFAULT 1,
        is_bundle INTEGER NOT NULL DEFAULT 0,
        related_product_ids TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )""",

    # orders
    """CREATE TABLE IF NOT EXISTS orders (
        order_id TEXT PRIMARY KEY,
        channel_id TEXT NOT NULL,
        state TEXT NOT NULL,
        order_placed_at TEXT,
        updated_at TEXT NOT NULL,
        total INTEGER,
        total_with_tax INTEGER
    )""",

    # order_lines (bundle_id가 있으면 번들 구성품 라인)
    """CREATE TABLE IF NOT EXISTS order_lines (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        order_id TEXT NOT NULL,
        product_id TEXT NOT NULL,
        variant_id TEXT,
        quantity INTEGER NOT NULL DEFAULT 1,
        bundle_id TEXT,
        FOREIGN KEY (order_id) REFERENCES orders(order_id)
    )""",

    # product_associations
    """CREATE TABLE IF NOT EXISTS product_associations (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        source_product_id TEXT NOT NULL,
        target_product_id TEXT NOT NULL,
        channel_id TEXT NOT NULL,
        cooccurrence_count INTEGER NOT NULL,
        frequency_score REAL NOT NULL,
        recency_score REAL NOT NULL,
        value_score REAL NOT NULL,
        final_score REAL NOT NULL,
        lift REAL,
        last_calculated TEXT NOT NULL,
        UNIQUE(source_product_id, target_product_id, channel_id)
    )""",

    # association_settings (단일 행)
    """CREATE TABLE IF NOT EXISTS association_settings (
        id INTEGER PRIMARY KEY CHECK (id = 1),
        enabled INTEGER NOT NULL DEFAULT 0,
        job_schedule TEXT NOT NULL DEFAULT '02:00',
        analysis_time_window_days INTEGER NOT NULL DEFAULT 90,
        min_cooccurrence_threshold INTEGER NOT NULL DEFAULT 5,
        min_score_threshold REAL NOT NULL DEFAULT 0.3,
        max_recommendations_per_product INTEGER NOT NULL DEFAULT 4,
        frequency_weight REAL NOT NULL DEFAULT 0.5,
        recency_weight REAL NOT NULL DEFAULT 0.3,
        value_weight REAL NOT NULL DEFAULT 0.2,
        pdp_related_section INTEGER NOT NULL DEFAULT 1,
        pdp_under_add_to_cart INTEGER NOT NULL DEFAULT 1,
        cart_page INTEGER NOT NULL DEFAULT 1,
        checkout_page INTEGER NOT NULL DEFAULT 0,
        fallback_to_related_products INTEGER NOT NULL DEFAULT 1,
        lift_enabled INTEGER NOT NULL DEFAULT 0,
        last_calculation TEXT,
        last_calculation_duration_ms INTEGER,
        last_calculation_associations_count INTEGER,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )""",
]


INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_orders_channel_placed ON orders(channel_id, order_placed_at)",
    "CREATE INDEX IF NOT EXISTS idx_order_lines_order ON order_lines(order_id)",
    "CREATE INDEX IF NOT EXISTS idx_order_lines_product ON order_lines(product_id)",
    # 추천 조회 (source, channel), 역방향 조회 (target, channel)
    "CREATE INDEX IF NOT EXISTS idx_assoc_source_channel ON product_associations(source_product_id, channel_id)",
    "CREATE INDEX IF NOT EXISTS idx_assoc_target_channel ON product_associations(target_product_id, channel_id)",
]


def init_db(db_path: Optional[Union[str, Path]] = None) -> Path:
    """DB 초기화 (테이블·인덱스 생성, WAL 모드)

    Returns:
        초기화된 DB 경로
    """
    path = get_db_path(db_path)
    conn = sqlite3.connect(str(path))
    try:
        # 전체 교체 중에도 읽기는 이전 스냅샷을 보도록
        conn.execute("PRAGMA journal_mode=WAL")
        cursor = conn.cursor()
        for sql in SCHEMA:
            cursor.execute(sql)
        for sql in INDEXES:
            cursor.execute(sql)
        cursor.execute(
            "INSERT OR IGNORE INTO schema_version (version, applied_at) VALUES (?, ?)",
            (SCHEMA_VERSION, datetime.now().isoformat()),
        )
        conn.commit()
        logger.info(f"DB 초기화 완료: {path}")
    finally:
        conn.close()
    return path
