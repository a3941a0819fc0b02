"""Receipt payload for the printing collaborator (data only, no layout)."""
from typing import Any, Dict

from pos.services.checkout_service import quantize_money


def _money(value) -> str:
    return str(quantize_money(value)) if value is not None else None


def build_receipt(sale) -> Dict[str, Any]:
    """Itemized, rounded breakdown of a stored sale."""
    return {
        'sale_id': sale.id,
        'receipt_number': sale.receipt_number,
        'transaction_date': sale.transaction_date.isoformat() if sale.transaction_date else None,
        'operator': sale.operator_name or sale.operator_id,
        'customer_name': sale.customer_name,
        'items': [
            {
                'product_name': line.product_name,
                'quantity': line.qty,
                'unit_price': _money(line.unit_price),
                'total_price': _money(line.line_total),
                'is_free_gift': bool(line.is_free_gift),
            }
            for line in sale.lines
        ],
        'subtotal': _money(sale.subtotal),
        'item_discount': _money(sale.item_discount_amount),
        'discount': _money(sale.overall_discount_amount),
        'vat': _money(sale.vat_amount),
        'vat_rate': _money(sale.vat_rate),
        'grand_total': _money(sale.grand_total),
        'received_amount': _money(sale.received_amount),
        'change_given': _money(sale.change_given),
        'payment_method': sale.payment_method,
        'status': sale.status,
        'outstanding_amount': _money(sale.outstanding_amount),
        'due_date': sale.due_date.isoformat() if sale.due_date else None,
    }
