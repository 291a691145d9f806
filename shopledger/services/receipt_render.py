"""
Receipt view model and print renderers (plain text and PDF).
"""
from io import BytesIO
from typing import Dict, Any, List

from reportlab.lib.pagesizes import A6
from reportlab.lib import colors
from reportlab.lib.units import mm
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.enums import TA_CENTER

from shopledger.utils.money import format_money, to_money, ZERO

TEXT_WIDTH = 40


def build_receipt(sale, tenant) -> Dict[str, Any]:
    """
    Build the receipt shown after checkout (and reprinted from history).

    Args:
        sale: Sale with its items loaded
        tenant: The shop that made the sale

    Returns:
        dict with shop header, sale identity, item lines, totals and footer.
        Money values are Decimal.
    """
    balance = to_money(sale.balance or 0)
    return {
        'sale_id': sale.id,
        'receipt_code': sale.receipt_code,
        'shop': {
            'name': tenant.name,
            'address': tenant.address or '',
            'phone': tenant.phone or '',
            'footer_message': tenant.footer_message or '',
        },
        'customer_id': sale.customer_id,
        'customer_name': sale.customer_name,
        'sold_by': sale.sold_by,
        'sold_by_name': sale.sold_by_name or '',
        'items': [
            {
                'product_id': item.product_id,
                'product_name': item.product_name,
                'quantity': item.quantity,
                'price': to_money(item.price),
                'total': to_money(item.total),
            }
            for item in sale.items
        ],
        'total': to_money(sale.total),
        'paid': to_money(sale.paid or 0),
        'balance': balance,
        'show_balance': balance > ZERO,
        'payment_method': sale.payment_method,
        'payment_label': sale.payment_method.upper(),
        'date': sale.created_at.strftime('%d %b %Y'),
        'time': sale.created_at.strftime('%H:%M'),
        'created_at': sale.created_at.isoformat(),
    }


def receipt_to_json(receipt: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of the receipt with money as floats for jsonify."""
    data = dict(receipt)
    for key in ('total', 'paid', 'balance'):
        data[key] = float(receipt[key])
    data['items'] = [
        dict(item, price=float(item['price']), total=float(item['total']))
        for item in receipt['items']
    ]
    return data


def _line(left: str, right: str, width: int = TEXT_WIDTH) -> str:
    gap = max(1, width - len(left) - len(right))
    return f"{left}{' ' * gap}{right}"


def render_receipt_text(receipt: Dict[str, Any], width: int = TEXT_WIDTH) -> str:
    """Monospace layout for thermal printers and plain-text previews."""
    shop = receipt['shop']
    rule = '-' * width
    lines: List[str] = [shop['name'].center(width).rstrip()]
    for value in (shop['address'], shop['phone']):
        if value:
            lines.append(value.center(width).rstrip())
    lines.append('')
    lines.append(f"Receipt ID: {receipt['receipt_code']}")
    lines.append(f"Customer: {receipt['customer_name']}")
    lines.append(f"Sold by: {receipt['sold_by_name']}")
    lines.append(rule)

    name_width = width - 22
    lines.append(f"{'Item':<{name_width}}{'Qty':>5}{'Price':>8}{'Total':>9}")
    for item in receipt['items']:
        name = item['product_name'][:name_width - 1]
        lines.append(
            f"{name:<{name_width}}{item['quantity']:>5}"
            f"{format_money(item['price']):>8}{format_money(item['total']):>9}"
        )
    lines.append(rule)

    lines.append(_line('TOTAL:', format_money(receipt['total']), width))
    lines.append(_line('Paid:', format_money(receipt['paid']), width))
    if receipt['show_balance']:
        lines.append(_line('Balance:', format_money(receipt['balance']), width))
    lines.append(_line('Payment:', receipt['payment_label'], width))
    lines.append(rule)

    lines.append(f"Date: {receipt['date']}".center(width).rstrip())
    lines.append(f"Time: {receipt['time']}".center(width).rstrip())
    if shop['footer_message']:
        lines.append('')
        lines.append(shop['footer_message'].center(width).rstrip())
    return '\n'.join(lines) + '\n'


def render_receipt_pdf(receipt: Dict[str, Any]) -> BytesIO:
    """
    Render the receipt as a small-format PDF.

    Returns:
        BytesIO positioned at 0.
    """
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A6,
        rightMargin=6*mm,
        leftMargin=6*mm,
        topMargin=6*mm,
        bottomMargin=6*mm,
        title=receipt['receipt_code'],
    )

    elements = []
    styles = getSampleStyleSheet()

    title_style = ParagraphStyle(
        'ShopName',
        parent=styles['Heading2'],
        fontSize=12,
        alignment=TA_CENTER,
        spaceAfter=2,
        fontName='Helvetica-Bold'
    )
    center_style = ParagraphStyle(
        'Center',
        parent=styles['Normal'],
        fontSize=8,
        alignment=TA_CENTER,
        spaceAfter=1
    )
    body_style = ParagraphStyle('Body', parent=styles['Normal'], fontSize=8)

    # 1. Shop header
    shop = receipt['shop']
    elements.append(Paragraph(shop['name'], title_style))
    for value in (shop['address'], shop['phone']):
        if value:
            elements.append(Paragraph(value, center_style))
    elements.append(Spacer(1, 3*mm))

    # 2. Sale identity
    for label, value in (
        ('Receipt ID', receipt['receipt_code']),
        ('Customer', receipt['customer_name']),
        ('Sold by', receipt['sold_by_name']),
    ):
        elements.append(Paragraph(f"<b>{label}:</b> {value}", body_style))
    elements.append(Spacer(1, 2*mm))

    # 3. Items
    table_data = [['Item', 'Qty', 'Price', 'Total']]
    for item in receipt['items']:
        table_data.append([
            item['product_name'],
            str(item['quantity']),
            format_money(item['price']),
            format_money(item['total']),
        ])
    items_table = Table(table_data, colWidths=[40*mm, 10*mm, 18*mm, 20*mm])
    items_table.setStyle(TableStyle([
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 7),
        ('ALIGN', (1, 0), (-1, -1), 'RIGHT'),
        ('LINEBELOW', (0, 0), (-1, 0), 0.5, colors.black),
        ('LINEBELOW', (0, -1), (-1, -1), 0.5, colors.black),
    ]))
    elements.append(items_table)
    elements.append(Spacer(1, 2*mm))

    # 4. Totals
    totals = [
        ['TOTAL:', format_money(receipt['total'])],
        ['Paid:', format_money(receipt['paid'])],
    ]
    if receipt['show_balance']:
        totals.append(['Balance:', format_money(receipt['balance'])])
    totals.append(['Payment:', receipt['payment_label']])
    totals_table = Table(totals, colWidths=[58*mm, 30*mm])
    totals_table.setStyle(TableStyle([
        ('ALIGN', (1, 0), (1, -1), 'RIGHT'),
        ('FONTSIZE', (0, 0), (-1, -1), 8),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, 0), 10),
    ]))
    elements.append(totals_table)
    elements.append(Spacer(1, 3*mm))

    # 5. Date and footer
    elements.append(Paragraph(f"Date: {receipt['date']}", center_style))
    elements.append(Paragraph(f"Time: {receipt['time']}", center_style))
    if shop['footer_message']:
        footer_style = ParagraphStyle('Footer', parent=center_style, fontName='Helvetica-Oblique')
        elements.append(Spacer(1, 2*mm))
        elements.append(Paragraph(shop['footer_message'], footer_style))

    doc.build(elements)
    buffer.seek(0)
    return buffer
