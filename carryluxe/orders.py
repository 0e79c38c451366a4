import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional

from .catalog import parse_record_id
from .errors import ValidationError
from .store import ORDERS, PRODUCTS, RecordStore

logger = logging.getLogger(__name__)

PostCommitHook = Callable[[Dict], object]

DEFAULT_ORDER_STATUS = "Pending"


def _present(value) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def utc_timestamp() -> str:
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def product_snapshot(product: Optional[Dict], product_id: int) -> Dict:
    # Copy the values so later edits to the product never reach the order.
    if not product:
        return {"id": product_id}
    return {
        "id": product.get("id", product_id),
        "name": product.get("name"),
        "price": product.get("price"),
    }


class OrderIntake:
    """Records purchase inquiries, then runs the post-commit hooks.

    Hooks run only after the order is durably stored. Each hook is called
    once; a failing hook is logged and never fails the submission.
    """

    def __init__(self, store: RecordStore, post_commit_hooks: Iterable[PostCommitHook] = ()):
        self.store = store
        self.post_commit_hooks: List[PostCommitHook] = list(post_commit_hooks)

    def submit(
        self,
        product_id,
        name,
        phone,
        address,
        email=None,
        note=None,
    ) -> Dict:
        if not all(_present(value) for value in (name, phone, address, product_id)):
            raise ValidationError("Missing fields")

        record_id = parse_record_id(product_id)
        if record_id is None:
            raise ValidationError("productId must be a number")

        product = self.store.get(PRODUCTS, record_id)
        if not product:
            logger.warning("Order placed for unknown product %s", record_id)

        order = {
            "id": self.store.new_id(),
            "product": product_snapshot(product, record_id),
            "name": str(name).strip(),
            "phone": str(phone).strip(),
            "email": str(email or "").strip(),
            "address": str(address).strip(),
            "note": str(note or "").strip(),
            "date": utc_timestamp(),
            "status": DEFAULT_ORDER_STATUS,
        }
        self.store.put(ORDERS, order)
        logger.info("Order %s recorded for product %s", order["id"], record_id)

        self._run_post_commit_hooks(order)
        return order

    def _run_post_commit_hooks(self, order: Dict) -> None:
        for hook in self.post_commit_hooks:
            try:
                hook(dict(order))
            except Exception:
                logger.exception("Post-commit hook %r failed for order %s", hook, order["id"])
