import logging

from database import Database
from services import fetch_by_ids, line_profit

logger = logging.getLogger(__name__)


def _money(value) -> float:
    return round(float(value or 0), 2)


def profit_by_source(db: Database) -> dict:
    """Profit of every order line, folded per product source.

    Lines whose product or source no longer exists are skipped.
    """
    orders = list(db["order"].find({}, {"products": 1}))
    lines = [line for o in orders for line in o.get("products") or []]
    products = fetch_by_ids(db, "product", (line.get("product") for line in lines))
    sources = fetch_by_ids(db, "source", (p.get("source") for p in products.values()))

    totals = {}
    for line in lines:
        product = products.get(line.get("product"))
        if product is None:
            continue
        source = sources.get(product.get("source"))
        if source is None:
            continue
        entry = totals.setdefault(source["_id"], {"name": source.get("name"), "total_profit": 0.0})
        entry["total_profit"] += line_profit(line, product)

    ranked = sorted(totals.items(), key=lambda kv: kv[1]["total_profit"], reverse=True)
    return {
        str(source_id): {"name": entry["name"], "total_profit": _money(entry["total_profit"])}
        for source_id, entry in ranked
    }


def compute_stats(db: Database) -> dict:
    total_products = db["product"].count_documents({})
    total_orders = db["order"].count_documents({})
    total_sources = db["source"].count_documents({})

    pipeline = [
        {"$group": {"_id": None, "total_sales": {"$sum": "$total_amount"}, "total_profit": {"$sum": "$total_profit"}}}
    ]
    res = list(db["order"].aggregate(pipeline))
    total_sales = res[0].get("total_sales", 0) if res else 0
    total_profit = res[0].get("total_profit", 0) if res else 0

    sold = list(db["order"].aggregate([
        {"$unwind": "$products"},
        {"$group": {"_id": None, "count": {"$sum": "$products.quantity"}}},
    ]))
    total_products_sold = sold[0].get("count", 0) if sold else 0

    average_order_value = _money(total_sales / total_orders) if total_orders > 0 else 0

    stats = {
        "total_products": total_products,
        "total_orders": total_orders,
        "total_sources": total_sources,
        "total_sales": _money(total_sales),
        "total_profit": _money(total_profit),
        "total_products_sold": total_products_sold,
        "average_order_value": average_order_value,
        "profit_by_source": profit_by_source(db),
    }
    logger.debug("Computed stats orders=%s products=%s", total_orders, total_products)
    return stats
