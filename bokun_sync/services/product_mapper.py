"""
Product Mapper

Bidirectional lookup between Bokun product ids and local tour types,
backed by the bokun_products table. Only active mappings resolve.

The mapping is a small read-through cache owned by one instance: it is
loaded on first use and reloaded by refresh(). A full sync calls refresh()
once at the start of the run; a stale mapping mid-run is acceptable.
"""

import logging
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..errors import MappingError
from ..models.product_mapping import BokunProduct

logger = logging.getLogger(__name__)


class ProductMapper:

    def __init__(self, db: Session):
        self.db = db
        self._local_by_product: Optional[Dict[str, str]] = None
        self._product_by_local: Dict[str, str] = {}
        self._active: List[Tuple[str, str]] = []

    def refresh(self) -> None:
        """Reload active mappings from the database"""
        rows = self.db.query(BokunProduct).filter(
            BokunProduct.is_active == True  # noqa: E712
        ).order_by(BokunProduct.created_at, BokunProduct.bokun_product_id).all()

        local_by_product: Dict[str, str] = {}
        product_by_local: Dict[str, str] = {}
        active: List[Tuple[str, str]] = []

        for row in rows:
            product_id = str(row.bokun_product_id)
            if product_id in local_by_product:
                logger.warning(
                    f"Bokun product {product_id} mapped to several tour types, "
                    f"keeping {local_by_product[product_id]}"
                )
                continue
            local_by_product[product_id] = row.local_tour_type
            product_by_local.setdefault(row.local_tour_type, product_id)
            active.append((product_id, row.local_tour_type))

        self._local_by_product = local_by_product
        self._product_by_local = product_by_local
        self._active = active
        logger.debug(f"Product mapping loaded: {active}")

    def _ensure_loaded(self) -> None:
        if self._local_by_product is None:
            self.refresh()

    def resolve_local_type(self, product_id) -> Optional[str]:
        """Local tour type for a Bokun product id, or None"""
        if product_id is None:
            return None
        self._ensure_loaded()
        return self._local_by_product.get(str(product_id))

    def require_local_type(self, product_id) -> str:
        """Local tour type for a Bokun product id; raises MappingError when unmapped"""
        local_type = self.resolve_local_type(product_id)
        if not local_type:
            raise MappingError(product_id)
        return local_type

    def resolve_upstream_product(self, local_tour_type: str) -> Optional[str]:
        """Bokun product id for a local tour type, or None"""
        self._ensure_loaded()
        return self._product_by_local.get(local_tour_type)

    def list_active_products(self) -> List[Tuple[str, str]]:
        """(bokun_product_id, local_tour_type) for every active product"""
        self._ensure_loaded()
        return list(self._active)
