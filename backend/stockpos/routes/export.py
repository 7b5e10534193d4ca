# Overview: CSV export of the active catalog.

import csv
import io

from flask import Blueprint, Response

from ..identity import require_auth
from ..money import cents_to_str
from ..services import catalog_service


export_bp = Blueprint("export", __name__, url_prefix="/api/export")

PRODUCT_EXPORT_COLUMNS = ["id", "name", "price", "stock_quantity"]


@export_bp.get("/products.csv")
@require_auth
def export_products_csv():
    products = catalog_service.list_products()["items"]

    stream = io.StringIO()
    writer = csv.writer(stream)
    writer.writerow(PRODUCT_EXPORT_COLUMNS)
    for p in products:
        writer.writerow([p["id"], p["name"], cents_to_str(p["price_cents"]), p["stock_quantity"]])

    return Response(
        stream.getvalue(),
        mimetype="text/csv",
        headers={"Content-Disposition": "attachment; filename=products.csv"},
    )
