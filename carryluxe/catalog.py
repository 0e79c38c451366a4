from typing import Dict, List, Optional

from .errors import NotFoundError
from .store import PRODUCTS, AnyOf, IgnoreCase, RecordStore

ACTIVE = "active"
HIDDEN = "hidden"
PRODUCT_STATUSES = (ACTIVE, HIDDEN)


def parse_record_id(value) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if not isinstance(value, float):
        try:
            return int(str(value).strip())
        except (TypeError, ValueError):
            pass
    try:
        numeric = float(str(value).strip())
    except (TypeError, ValueError):
        return None
    # 5.0 and "5.0" name record 5; fractional and non-finite values name nothing.
    return int(numeric) if numeric.is_integer() else None


def is_active(product: Dict) -> bool:
    # Records written before the status field existed count as active.
    return product.get("status") in (ACTIVE, None)


class CatalogService:
    def __init__(self, store: RecordStore, show_hidden_detail: bool = True):
        self.store = store
        self.show_hidden_detail = show_hidden_detail

    def list_active(self, brand: Optional[str] = None) -> List[Dict]:
        where = {"status": AnyOf(ACTIVE, None)}
        brand = (brand or "").strip()
        if brand:
            where["brand"] = IgnoreCase(brand)
        return self.store.list(PRODUCTS, where)

    def get_by_id(self, product_id) -> Dict:
        record_id = parse_record_id(product_id)
        product = self.store.get(PRODUCTS, record_id) if record_id is not None else None
        if not product:
            raise NotFoundError("Not found")
        if not self.show_hidden_detail and not is_active(product):
            raise NotFoundError("Not found")
        return product
