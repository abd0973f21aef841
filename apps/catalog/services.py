import logging
from dataclasses import dataclass, field
from decimal import Decimal

from django.conf import settings

from apps.utils.exceptions import BusinessLogicException
from apps.utils.utils import to_decimal
from .models import Product

logger = logging.getLogger(__name__)

CSV_COLUMNS = ["name", "description", "price", "category", "stock", "discount"]
CSV_TEMPLATE = (
    "name,description,price,category,stock,discount\n"
    "Ejemplo Producto,Descripción del producto,15000,General,50,0\n"
)
DEFAULT_CATEGORY = "General"


@dataclass
class ImportResult:
    created: int = 0
    skipped_lines: list = field(default_factory=list)


def _column(parts, index):
    return parts[index].strip() if index < len(parts) else ""


def parse_product_csv(text: str):
    """
    Parse a catalog CSV into product field dicts.

    The first line is a header and is skipped. Each remaining non-blank line
    is split on raw commas: there is no quoting support, so a quoted field
    containing a comma shifts every later column.

    Returns (rows, skipped_line_numbers); line numbers are 1-based and count
    the header.
    """
    rows = []
    skipped = []
    lines = (text or "").split("\n")

    for line_no, line in enumerate(lines[1:], start=2):
        if not line.strip():
            continue

        parts = line.split(",")
        name = _column(parts, 0)
        price = _column(parts, 2)
        stock = _column(parts, 4)

        if not (name and price and stock):
            skipped.append(line_no)
            continue

        discount = _column(parts, 5)
        rows.append({
            "name": name,
            "description": _column(parts, 1),
            "price": to_decimal(price),
            "category": _column(parts, 3) or DEFAULT_CATEGORY,
            "stock": max(0, int(to_decimal(stock))),
            "discount": to_decimal(discount) if discount else Decimal("0"),
        })

    return rows, skipped


def import_products(store, text: str) -> ImportResult:
    """
    Parse and bulk insert into the store's catalog.
    Each call is its own insert; earlier imports are never rolled back.
    """
    rows, skipped = parse_product_csv(text)
    if not rows:
        raise BusinessLogicException("No valid rows found in the file.", code="empty_import")

    Product.objects.bulk_create([Product(store=store, **row) for row in rows])
    logger.info(
        "Imported %s products (%s skipped)", len(rows), len(skipped),
        extra={"store_id": store.id},
    )
    return ImportResult(created=len(rows), skipped_lines=skipped)


def point_of_sale_checkout(store, lines, guest_info=None, payment_method="cash"):
    """
    Record an in-store sale.

    `lines`: [{"product_id": ..., "quantity": int}, ...]
    The order is created already DELIVERED with no customer. Stock is then
    decremented line by line, clamped at zero, outside any transaction.
    """
    from apps.orders.models import Order, OrderItem

    if not lines:
        raise BusinessLogicException("Sale has no items.", code="empty_sale")

    product_ids = [line["product_id"] for line in lines]
    products = {
        str(p.id): p
        for p in Product.objects.filter(store=store, id__in=product_ids)
    }

    priced = []
    subtotal = Decimal("0")
    for line in lines:
        product = products.get(str(line["product_id"]))
        if product is None:
            raise BusinessLogicException(
                "Product does not belong to this store.", code="invalid_product"
            )
        qty = int(line.get("quantity") or 0)
        if qty <= 0:
            raise BusinessLogicException("Quantity must be positive.", code="invalid_quantity")
        priced.append((product, qty))
        subtotal += product.price * qty

    order = Order.objects.create(
        store=store,
        customer=None,
        status=Order.Status.DELIVERED,
        payment_method=payment_method,
        subtotal=subtotal,
        service_fee=Decimal("0"),
        delivery_fee=Decimal("0"),
        total=subtotal,
        is_pos=True,
        guest_info={**(guest_info or {}), "type": "POS", "method": payment_method},
    )
    OrderItem.objects.bulk_create([
        OrderItem(order=order, product=product, product_name=product.name, quantity=qty, unit_price=product.price)
        for product, qty in priced
    ])

    for product, qty in priced:
        product.stock = max(0, product.stock - qty)
        product.save(update_fields=["stock", "updated_at"])

    logger.info(
        "POS sale recorded for %s %s", subtotal, settings.CURRENCY,
        extra={"store_id": store.id, "order_id": order.id},
    )
    return order
