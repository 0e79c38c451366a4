import json
import logging
import math
from typing import Dict, Iterable, List, Mapping, Optional

from .catalog import ACTIVE, PRODUCT_STATUSES, parse_record_id
from .errors import NotFoundError, UpstreamError, ValidationError
from .media import MediaStore
from .store import ORDERS, PRODUCTS, RecordStore

logger = logging.getLogger(__name__)

TEXT_FIELDS = ("brand", "name", "description", "currency", "authenticity")
REQUIRED_TEXT_FIELDS = ("brand", "name")
DEFAULT_CURRENCY = "USD"


def parse_json_list(value) -> List[str]:
    """Accept a list, a JSON array string or a comma separated string."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value if str(item).strip()]
    candidate = str(value).strip()
    if not candidate:
        return []
    try:
        parsed = json.loads(candidate)
        if isinstance(parsed, list):
            return [str(item).strip() for item in parsed if str(item).strip()]
    except (json.JSONDecodeError, ValueError):
        pass
    return [item.strip() for item in candidate.split(",") if item.strip()]


def parse_kept_images(value) -> List[str]:
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value if item]
    candidate = str(value or "").strip()
    if not candidate:
        return []
    try:
        parsed = json.loads(candidate)
    except (json.JSONDecodeError, ValueError):
        return [candidate]
    if isinstance(parsed, list):
        return [str(item) for item in parsed if item]
    return [candidate]


def unique_preserve(items: Iterable[str]) -> List[str]:
    seen = set()
    result: List[str] = []
    for item in items:
        if not item or item in seen:
            continue
        seen.add(item)
        result.append(item)
    return result


def is_blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def parse_price(value):
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        raise ValidationError("Price must be a valid number.")
    if not math.isfinite(numeric) or numeric < 0:
        raise ValidationError("Price must be a non-negative number.")
    return int(numeric) if numeric.is_integer() else round(numeric, 2)


def parse_stock(value) -> int:
    try:
        stock = int(str(value).strip())
    except (TypeError, ValueError):
        raise ValidationError("Stock must be a whole number.")
    if stock < 0:
        raise ValidationError("Stock cannot be negative.")
    return stock


def parse_status(value) -> str:
    status = str(value).strip().lower()
    if status not in PRODUCT_STATUSES:
        raise ValidationError("Status must be one of: " + ", ".join(PRODUCT_STATUSES))
    return status


class AdminConsole:
    """Product CRUD and order listing for the authenticated admin."""

    def __init__(
        self,
        store: RecordStore,
        media: MediaStore,
        product_limit: int = 50,
        max_images: int = 10,
        max_upload_files: int = 5,
    ):
        self.store = store
        self.media = media
        self.product_limit = product_limit
        self.max_images = max_images
        self.max_upload_files = max_upload_files

    def list_products(self) -> List[Dict]:
        return self.store.list(PRODUCTS)

    def list_orders(self) -> List[Dict]:
        return self.store.list(ORDERS)

    def save_uploads(self, uploads) -> List[str]:
        files = [u for u in (uploads or []) if u is not None and getattr(u, "filename", "")]
        if len(files) > self.max_upload_files:
            raise ValidationError(f"Upload at most {self.max_upload_files} images at a time.")

        urls: List[str] = []
        try:
            for upload in files:
                try:
                    urls.append(self.media.save(upload))
                except UpstreamError as exc:
                    logger.error("Image upload failed: %s", exc.message)
        except Exception:
            self.discard_uploads(urls)
            raise
        return urls

    def discard_uploads(self, urls: List[str]) -> None:
        if urls and self.media is not None:
            self.media.discard(urls)

    def _put_with_uploads(self, record: Dict, uploaded: List[str]) -> Dict:
        # Files saved for this request go away again if the record never lands.
        try:
            return self.store.put(PRODUCTS, record)
        except Exception:
            self.discard_uploads(uploaded)
            raise

    def create_product(self, fields: Mapping, uploads=None) -> Dict:
        brand = str(fields.get("brand") or "").strip()
        name = str(fields.get("name") or "").strip()
        if not brand or not name:
            raise ValidationError("Missing fields")

        price = 0 if is_blank(fields.get("price")) else parse_price(fields.get("price"))
        status = ACTIVE if is_blank(fields.get("status")) else parse_status(fields.get("status"))
        stock: Optional[int] = None
        if not is_blank(fields.get("stock")):
            stock = parse_stock(fields.get("stock"))

        if self.store.count(PRODUCTS) >= self.product_limit:
            raise ValidationError(f"Product limit reached ({self.product_limit})")

        uploaded = self.save_uploads(uploads)
        images = uploaded + parse_json_list(fields.get("imageUrls"))

        product = {
            "id": self.store.new_id(),
            "brand": brand,
            "name": name,
            "price": price,
            "currency": str(fields.get("currency") or "").strip().upper() or DEFAULT_CURRENCY,
            "description": str(fields.get("description") or "").strip(),
            "images": unique_preserve(images)[: self.max_images],
            "status": status,
        }
        if stock is not None:
            product["stock"] = stock
        authenticity = str(fields.get("authenticity") or "").strip()
        if authenticity:
            product["authenticity"] = authenticity

        stored = self._put_with_uploads(product, uploaded)
        logger.info("Created product %s (%s %s)", stored["id"], brand, name)
        return stored

    def update_product(self, product_id, fields: Mapping, uploads=None) -> Dict:
        record_id = parse_record_id(product_id)
        existing = self.store.get(PRODUCTS, record_id) if record_id is not None else None
        if not existing:
            raise NotFoundError("Not found")

        updates: Dict[str, object] = {}
        for field_name in TEXT_FIELDS:
            if field_name not in fields or fields.get(field_name) is None:
                continue
            value = str(fields.get(field_name)).strip()
            if field_name in REQUIRED_TEXT_FIELDS and not value:
                raise ValidationError(f"{field_name.capitalize()} cannot be empty.")
            if field_name == "currency":
                value = value.upper() or DEFAULT_CURRENCY
            updates[field_name] = value

        if not is_blank(fields.get("price")):
            updates["price"] = parse_price(fields.get("price"))
        if not is_blank(fields.get("status")):
            updates["status"] = parse_status(fields.get("status"))
        if not is_blank(fields.get("stock")):
            updates["stock"] = parse_stock(fields.get("stock"))

        uploaded = self.save_uploads(uploads)
        new_images = uploaded + parse_json_list(fields.get("imageUrls"))
        current_images = [str(image) for image in existing.get("images") or []]
        # A null kept list means "not supplied", not "remove everything".
        if fields.get("existingImages") is not None:
            kept = [
                image
                for image in parse_kept_images(fields.get("existingImages"))
                if image in current_images
            ]
            updates["images"] = unique_preserve(kept + new_images)[: self.max_images]
        elif new_images:
            updates["images"] = unique_preserve(current_images + new_images)[: self.max_images]

        updated = self._put_with_uploads({**existing, **updates}, uploaded)
        logger.info("Updated product %s (%s)", updated["id"], ", ".join(sorted(updates)) or "no changes")
        return updated

    def delete_product(self, product_id) -> None:
        record_id = parse_record_id(product_id)
        if record_id is None:
            return
        self.store.delete(PRODUCTS, record_id)
        logger.info("Deleted product %s", record_id)
