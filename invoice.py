"""
Invoice rendering.

An invoice is a fixed ``InvoiceData`` record built from a stored order. It is
rendered two ways: an HTML page (Jinja2) and a downloadable A4 PDF drawn with
Pillow. Totals come from the order; nothing here recalculates them.
"""
import io
import logging
from datetime import datetime
from typing import List, Tuple

from jinja2 import Environment
from PIL import Image, ImageDraw, ImageFont

import config
from schemas import CompanyInfo, InvoiceData, InvoiceItem
from services import unit_price

logger = logging.getLogger(__name__)


def money(value) -> str:
    return f"{float(value):,.2f}"


_env = Environment(autoescape=True)
_env.filters["money"] = money

INVOICE_TEMPLATE = _env.from_string("""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>Invoice {{ inv.invoice_number }}</title>
  <style>
    body { font-family: Georgia, serif; background: #f9fafb; color: #4a5568; }
    .invoice { max-width: 56rem; margin: 2rem auto; padding: 1.5rem; background: #fff; }
    header, .details, footer { display: flex; justify-content: space-between; }
    header { border-bottom: 2px solid #e5e7eb; padding-bottom: 1rem; margin-bottom: 2rem; }
    h1, .label { color: #1e3a8a; }
    .due { font-size: 1.5rem; font-weight: bold; color: #48bb78; }
    table { width: 100%; border-collapse: collapse; margin: 2rem 0; }
    th { background: #edf2f7; color: #1e3a8a; text-align: left; }
    th, td { padding: .75rem 1.5rem; border-top: 1px solid #e5e7eb; }
    tr.total { background: #edf2f7; font-weight: bold; }
    footer { border-top: 2px solid #e5e7eb; padding-top: 1.5rem; }
    .contact { text-align: center; margin-top: 2rem; font-size: .875rem; }
  </style>
</head>
<body>
<div class="invoice" role="document">
  <header>
    <h1>INVOICE</h1>
    <p>{{ inv.company_info.name }}</p>
  </header>
  <section class="details">
    <div>
      <p class="label">INVOICE TO:</p>
      <p>{{ inv.invoice_to }}</p>
      <p>P : {{ inv.phone }}</p>
      <p>A : {{ inv.address }}</p>
    </div>
    <div>
      <p class="label">TOTAL DUE</p>
      <p class="due">{{ inv.currency }} : {{ inv.total_due | money }}</p>
      <p>No : {{ inv.invoice_number }}</p>
      <p>Date : {{ inv.invoice_date }}</p>
    </div>
  </section>
  <table role="table">
    <thead>
      <tr><th scope="col">SERVICE</th><th scope="col">QTY</th><th scope="col">PRICE</th><th scope="col">TOTAL</th></tr>
    </thead>
    <tbody>
    {% for item in inv.items %}
      <tr><td>{{ item.description }}</td><td>{{ item.quantity }}</td><td>{{ item.price | money }}</td><td>{{ item.total | money }}</td></tr>
    {% endfor %}
      <tr><td>Sub-total:</td><td></td><td></td><td>{{ inv.sub_total | money }}</td></tr>
      <tr><td>Delivery:</td><td></td><td></td><td>{{ inv.delivery_fee | money }}</td></tr>
      <tr class="total"><td>Total:</td><td></td><td></td><td>{{ inv.currency }} {{ inv.total_due | money }}</td></tr>
    </tbody>
  </table>
  <section>
    <p class="label">Payment Method:</p>
    <p>{{ inv.payment_method }}</p>
  </section>
  <footer>
    <p>{{ inv.thank_you_message or "" }}</p>
    <p>{{ inv.admin_name }}</p>
  </footer>
  <p class="contact">{{ inv.company_info.name }}<br>{{ inv.company_info.address }}<br>{{ inv.company_info.website }}</p>
</div>
</body>
</html>
""")


def invoice_number(order: dict) -> str:
    return "INV-" + str(order["_id"])[-6:].upper()


def invoice_from_order(order: dict) -> InvoiceData:
    """Build the invoice record of a populated order."""
    items = []
    for line in order.get("products") or []:
        product = line.get("product")
        price = unit_price(line, product)
        description = product.get("name", "") if product else "(deleted product)"
        items.append(InvoiceItem(description=description, quantity=line["quantity"],
                                 price=price, total=round(price * line["quantity"], 2)))

    delivery_fee = float(order.get("delivery_charge") or 0)
    total_due = float(order.get("total_amount") or 0)
    created = order.get("created_at") or datetime.now()

    return InvoiceData(
        invoice_number=invoice_number(order),
        invoice_date=created.strftime("%B %d, %Y"),
        invoice_to=order.get("customer_name", ""),
        phone=order.get("phone", ""),
        address=order.get("address", ""),
        items=items,
        sub_total=round(total_due - delivery_fee, 2),
        delivery_fee=delivery_fee,
        total_due=total_due,
        payment_method=order.get("payment_method") or "",
        currency=config.INVOICE_CURRENCY,
        thank_you_message=config.INVOICE_THANK_YOU,
        admin_name=config.INVOICE_ADMIN_NAME,
        company_info=CompanyInfo(
            name=config.COMPANY_NAME,
            address=config.COMPANY_ADDRESS,
            website=config.COMPANY_WEBSITE,
        ),
    )


def render_html(invoice: InvoiceData) -> str:
    return INVOICE_TEMPLATE.render(inv=invoice)


# PDF layout, A4 at 144 dpi
PAGE_SIZE = (1190, 1684)
MARGIN = 60
LINE_HEIGHT = 30
COLUMNS = (MARGIN, 640, 800, 960)
BLUE = (30, 58, 138)
GRAY = (74, 85, 104)
GREEN = (72, 187, 120)

Row = List[Tuple[int, str, tuple]]


def _pdf_rows(invoice: InvoiceData) -> List[Row]:
    cur = invoice.currency
    rows: List[Row] = [
        [(MARGIN, "INVOICE", BLUE), (COLUMNS[2], invoice.company_info.name, GRAY)],
        [],
        [(MARGIN, "INVOICE TO:", BLUE), (COLUMNS[2], "TOTAL DUE", BLUE)],
        [(MARGIN, invoice.invoice_to, GRAY), (COLUMNS[2], f"{cur} : {money(invoice.total_due)}", GREEN)],
        [(MARGIN, f"P : {invoice.phone}", GRAY), (COLUMNS[2], f"No : {invoice.invoice_number}", GRAY)],
        [(MARGIN, f"A : {invoice.address}", GRAY), (COLUMNS[2], f"Date : {invoice.invoice_date}", GRAY)],
        [],
        [(x, label, BLUE) for x, label in zip(COLUMNS, ("SERVICE", "QTY", "PRICE", "TOTAL"))],
    ]
    for item in invoice.items:
        rows.append([
            (COLUMNS[0], item.description[:48], GRAY),
            (COLUMNS[1], str(item.quantity), GRAY),
            (COLUMNS[2], money(item.price), GRAY),
            (COLUMNS[3], money(item.total), GRAY),
        ])
    rows += [
        [(COLUMNS[0], "Sub-total:", GRAY), (COLUMNS[3], money(invoice.sub_total), GRAY)],
        [(COLUMNS[0], "Delivery:", GRAY), (COLUMNS[3], money(invoice.delivery_fee), GRAY)],
        [(COLUMNS[0], "Total:", BLUE), (COLUMNS[3], f"{cur} {money(invoice.total_due)}", GREEN)],
        [],
        [(MARGIN, "Payment Method:", BLUE)],
        [(MARGIN, invoice.payment_method, GRAY)],
        [],
        [(MARGIN, invoice.thank_you_message or "", GRAY), (COLUMNS[2], invoice.admin_name, GRAY)],
        [],
    ]
    for text in (invoice.company_info.name, invoice.company_info.address, invoice.company_info.website):
        if text:
            rows.append([(MARGIN, text, GRAY)])
    return rows


def render_pdf(invoice: InvoiceData) -> bytes:
    font = ImageFont.load_default(size=20)
    rows = _pdf_rows(invoice)
    per_page = (PAGE_SIZE[1] - 2 * MARGIN) // LINE_HEIGHT

    pages = []
    for start in range(0, len(rows), per_page):
        page = Image.new("RGB", PAGE_SIZE, "white")
        draw = ImageDraw.Draw(page)
        y = MARGIN
        for row in rows[start:start + per_page]:
            for x, text, color in row:
                draw.text((x, y), text, fill=color, font=font)
            y += LINE_HEIGHT
        pages.append(page)

    buf = io.BytesIO()
    pages[0].save(buf, format="PDF", save_all=True, append_images=pages[1:], resolution=144.0)
    logger.debug("Rendered invoice %s pdf pages=%d", invoice.invoice_number, len(pages))
    return buf.getvalue()
