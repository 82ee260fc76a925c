"""
Resource services for sources, products and orders.

Every service has the same shape: ``list``, ``get``, ``create``, ``update`` and
``delete``. Reads resolve stored references into the referenced documents
(a product's ``source``; an order line's ``product`` together with that
product's ``source``). Each call is a handful of single-document operations;
nothing here is transactional across documents.
"""
import logging
from typing import Dict, Iterable, List, Optional, Tuple, Type

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel, ValidationError
from pymongo import ReturnDocument

from database import Database, create_document, get_documents, now, to_object_id
from schemas import Order, OrderUpdate, Product, ProductUpdate, Source, SourceUpdate

logger = logging.getLogger(__name__)

# Largest accepted gap between client-supplied and recomputed order totals.
TOTAL_TOLERANCE = 0.01


class NotFoundError(Exception):
    pass


class PayloadError(Exception):
    def __init__(self, message: str, errors: Optional[list] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or []


def parse_id(value, label: str = "id") -> ObjectId:
    try:
        return to_object_id(value)
    except (InvalidId, TypeError):
        raise PayloadError(f"Invalid {label}")


def fetch_by_ids(db: Database, collection_name: str, ids: Iterable[ObjectId]) -> Dict[ObjectId, dict]:
    unique = list({i for i in ids if isinstance(i, ObjectId)})
    if not unique:
        return {}
    return {doc["_id"]: doc for doc in db[collection_name].find({"_id": {"$in": unique}})}


class ResourceService:
    collection_name: str = ""
    label: str = ""
    # Fields an update may not set to null
    required_fields: tuple = ()
    create_schema: Type[BaseModel]
    update_schema: Type[BaseModel]

    def __init__(self, db: Database):
        self.db = db

    @property
    def collection(self):
        return self.db[self.collection_name]

    # Hooks
    def populate(self, docs: List[dict]) -> List[dict]:
        return docs

    def prepare(self, data: dict) -> dict:
        return data

    def prepare_update(self, current: dict, changes: dict) -> dict:
        return changes

    # Operations
    def list(self) -> List[dict]:
        return self.populate(get_documents(self.db, self.collection_name))

    def get(self, item_id) -> dict:
        doc = self.collection.find_one({"_id": parse_id(item_id)})
        if not doc:
            raise NotFoundError(f"{self.label} not found")
        return self.populate([doc])[0]

    def create(self, payload: BaseModel) -> dict:
        data = self.prepare(payload.model_dump())
        doc = create_document(self.db, self.collection_name, data)
        logger.info("Created %s %s", self.collection_name, doc["_id"])
        return self.populate([doc])[0]

    def update(self, item_id, data: dict) -> dict:
        _id = parse_id(item_id)
        try:
            changes = self.update_schema.model_validate(data).model_dump(exclude_unset=True)
        except ValidationError as e:
            raise PayloadError(f"Invalid {self.label.lower()} data", errors=e.errors(include_url=False))
        if not changes:
            raise PayloadError("No fields to update")
        for field in self.required_fields:
            if field in changes and changes[field] is None:
                raise PayloadError(f"{field} is required")

        current = self.collection.find_one({"_id": _id})
        if not current:
            raise NotFoundError(f"{self.label} not found")
        changes = self.prepare_update(current, changes)
        changes["updated_at"] = now()

        doc = self.collection.find_one_and_update(
            {"_id": _id}, {"$set": changes}, return_document=ReturnDocument.AFTER
        )
        if doc is None:
            raise NotFoundError(f"{self.label} not found")
        logger.info("Updated %s %s fields=%s", self.collection_name, _id, sorted(changes))
        return self.populate([doc])[0]

    def delete(self, item_id) -> dict:
        res = self.collection.delete_one({"_id": parse_id(item_id)})
        if res.deleted_count == 0:
            raise NotFoundError(f"{self.label} not found")
        logger.info("Deleted %s %s", self.collection_name, item_id)
        return {"message": f"{self.label} deleted successfully"}


class SourceService(ResourceService):
    collection_name = "source"
    label = "Source"
    create_schema = Source
    update_schema = SourceUpdate
    required_fields = ("name",)


class ProductService(ResourceService):
    collection_name = "product"
    label = "Product"
    create_schema = Product
    update_schema = ProductUpdate
    required_fields = ("name", "price", "buying_price", "source")

    def _require_source(self, value) -> ObjectId:
        source_id = parse_id(value, "source id")
        if not self.db["source"].find_one({"_id": source_id}):
            raise PayloadError("Source not found")
        return source_id

    def prepare(self, data: dict) -> dict:
        data["source"] = self._require_source(data["source"])
        return data

    def prepare_update(self, current: dict, changes: dict) -> dict:
        if "source" in changes:
            changes["source"] = self._require_source(changes["source"])
        return changes

    def populate(self, docs: List[dict]) -> List[dict]:
        sources = fetch_by_ids(self.db, "source", (d.get("source") for d in docs))
        for doc in docs:
            doc["source"] = sources.get(doc.get("source"))
        return docs


def unit_price(line: dict, product: Optional[dict] = None) -> float:
    """Price charged per unit on an order line.

    Lines carry the price captured when they were written; the product is
    only consulted for lines stored without one.
    """
    if line.get("adjusted_price") is not None:
        return float(line["adjusted_price"])
    return float((product or {}).get("price", 0))


def unit_cost(line: dict, product: Optional[dict] = None) -> float:
    if line.get("buying_price") is not None:
        return float(line["buying_price"])
    return float((product or {}).get("buying_price", 0))


def line_profit(line: dict, product: Optional[dict] = None) -> float:
    return (unit_price(line, product) - unit_cost(line, product)) * line["quantity"]


def compute_order_totals(lines: List[dict], delivery_charge: float,
                         products: Optional[Dict[ObjectId, dict]] = None) -> Tuple[float, float]:
    products = products or {}
    amount = 0.0
    profit = 0.0
    for line in lines:
        product = products.get(line["product"])
        amount += unit_price(line, product) * line["quantity"]
        profit += line_profit(line, product)
    amount += float(delivery_charge or 0)
    return round(amount, 2), round(profit, 2)


def has_snapshot(line: dict) -> bool:
    return line.get("adjusted_price") is not None and line.get("buying_price") is not None


class OrderService(ResourceService):
    collection_name = "order"
    label = "Order"
    create_schema = Order
    update_schema = OrderUpdate
    required_fields = ("title", "customer_name", "phone", "address")

    def _resolve_lines(self, lines: List[dict]) -> List[dict]:
        """Check new lines and stamp the product's current prices on them."""
        resolved = []
        for line in lines:
            line = dict(line)
            line["product"] = parse_id(line["product"], "product id")
            resolved.append(line)
        products = fetch_by_ids(self.db, "product", (line["product"] for line in resolved))
        for line in resolved:
            product = products.get(line["product"])
            if product is None:
                raise PayloadError(f"Product not found: {line['product']}")
            if line.get("adjusted_price") is None:
                line["adjusted_price"] = float(product.get("price", 0))
            line["buying_price"] = float(product.get("buying_price", 0))
        return resolved

    def _stored_line_products(self, lines: List[dict]) -> Dict[ObjectId, dict]:
        # Only lines written without price snapshots need the product
        missing = [line.get("product") for line in lines if not has_snapshot(line)]
        products = fetch_by_ids(self.db, "product", missing)
        for product_id in missing:
            if product_id not in products:
                raise PayloadError(f"Product not found: {product_id}")
        return products

    def _apply_totals(self, target: dict, lines: List[dict], delivery_charge: float,
                      supplied: dict, products: Optional[Dict[ObjectId, dict]] = None):
        amount, profit = compute_order_totals(lines, delivery_charge, products)
        for field, expected in (("total_amount", amount), ("total_profit", profit)):
            given = supplied.get(field)
            if given is not None and abs(float(given) - expected) > TOTAL_TOLERANCE:
                raise PayloadError(f"{field} does not match order lines (expected {expected:.2f}, got {float(given):.2f})")
        target["total_amount"] = amount
        target["total_profit"] = profit

    def prepare(self, data: dict) -> dict:
        lines = self._resolve_lines(data.get("products") or [])
        data["products"] = lines
        self._apply_totals(data, lines, data.get("delivery_charge", 0), dict(data))
        return data

    def prepare_update(self, current: dict, changes: dict) -> dict:
        touches_totals = any(k in changes for k in ("products", "delivery_charge", "total_amount", "total_profit"))
        if not touches_totals:
            return changes
        if changes.get("delivery_charge", 0) is None:
            changes["delivery_charge"] = 0
        products = None
        if "products" in changes:
            lines = self._resolve_lines(changes["products"] or [])
            changes["products"] = lines
        else:
            lines = current.get("products") or []
            products = self._stored_line_products(lines)
        delivery_charge = changes.get("delivery_charge", current.get("delivery_charge", 0))
        supplied = {k: changes.pop(k) for k in ("total_amount", "total_profit") if k in changes}
        self._apply_totals(changes, lines, delivery_charge, supplied, products)
        return changes

    def populate(self, docs: List[dict]) -> List[dict]:
        product_ids = [line.get("product") for d in docs for line in d.get("products") or []]
        products = fetch_by_ids(self.db, "product", product_ids)
        ProductService(self.db).populate(list(products.values()))
        for doc in docs:
            for line in doc.get("products") or []:
                line["product"] = products.get(line.get("product"))
        return docs
