"""
Repository -- 전체 re-export

Usage:
    from fbt.infrastructure.database.repos import AssociationRepository
    from fbt.infrastructure.database.repos import OrderCorpusRepository
"""

from .association_repo import AssociationRepository
from .order_corpus_repo import OrderCorpusRepository
from .product_repo import ProductRepository
from .settings_repo import AssociationSettingsRepository

__all__ = [
    "AssociationRepository",
    "OrderCorpusRepository",
    "ProductRepository",
    "AssociationSettingsRepository",
]
