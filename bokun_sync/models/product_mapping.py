"""
Bokun Product Mapping Model

Maps Bokun product IDs to local tour types. The is_active flag decides
whether a product participates in webhook ingestion and full syncs.
"""

import uuid
from sqlalchemy import Column, String, DateTime, Boolean, UniqueConstraint, Index
from ..database import Base
from ..utils.db_helpers import utcnow


class BokunProduct(Base):
    """
    One row per (local tour type, Bokun product) pair.
    Read-mostly: loaded once per sync run by ProductMapper.
    """
    __tablename__ = "bokun_products"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # Local tour type, e.g. NIGHT_TOUR, MORNING_TOUR
    local_tour_type = Column(String(100), nullable=False)

    # External Bokun identifiers
    bokun_product_id = Column(String(100), nullable=False)
    bokun_variant_id = Column(String(100), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("local_tour_type", "bokun_product_id", name="uq_bokun_product_tour_type"),
        Index("ix_bokun_products_tour_type", "local_tour_type"),
    )

    def __repr__(self):
        return f"<BokunProduct {self.bokun_product_id} -> {self.local_tour_type} active={self.is_active}>"
