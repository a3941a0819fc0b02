"""
Sale repository - persists a finalized sale and decrements stock atomically.

Stock rows are locked FOR UPDATE (a no-op on SQLite) and every product is
checked before anything is written; the whole sale commits or nothing does.
"""
import logging
from collections import OrderedDict
from typing import Dict

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pos.domain import PaymentMethod, SaleDraft
from pos.exceptions import BusinessLogicError, InsufficientStockError, NotFoundError, PersistenceError
from pos.models import (
    Customer, Product, ProductStock, Sale, SaleLine,
    StockMove, StockMoveLine, StockMoveType, StockReferenceType
)
from pos.services.checkout_service import quantize_money

logger = logging.getLogger(__name__)


class SqlSaleRepository:
    """Sale repository backed by a SQLAlchemy session."""

    def __init__(self, session: Session):
        self.session = session

    def create_sale(self, draft: SaleDraft) -> Sale:
        """
        Persist ``draft`` and decrement stock for every line, gifts included.

        Raises:
            InsufficientStockError: a product's stock would go negative
            NotFoundError: a product or the customer no longer exists
            PersistenceError: the database rejected the write
        """
        session = self.session
        try:
            required = _required_quantities(draft)
            stock_rows = self._lock_stocks(list(required.keys()))

            names = {line.product_id: line.product_name for line in draft.lines}
            for product_id, qty in required.items():
                row = stock_rows.get(product_id)
                if row is None:
                    raise NotFoundError(f'Product {names[product_id]} not found.')
                if row.on_hand_qty - qty < 0:
                    raise InsufficientStockError(names[product_id], qty, row.on_hand_qty)

            sale = Sale(
                receipt_number=draft.receipt_number,
                transaction_date=draft.transaction_date,
                operator_id=draft.operator_id,
                operator_name=draft.operator_name,
                customer_id=draft.customer_id,
                customer_name=draft.customer_name,
                customer_type=draft.customer_type.value,
                total_original_price=quantize_money(draft.total_original_price),
                item_discount_amount=quantize_money(draft.item_discount_amount),
                subtotal=quantize_money(draft.subtotal),
                overall_discount_type=draft.overall_discount_type.value if draft.overall_discount_type else None,
                overall_discount_value=quantize_money(draft.overall_discount_value),
                overall_discount_amount=quantize_money(draft.overall_discount_amount),
                subtotal_after_discount=quantize_money(draft.subtotal_after_discount),
                vat_rate=quantize_money(draft.vat_rate),
                vat_amount=quantize_money(draft.vat_amount),
                grand_total=quantize_money(draft.grand_total),
                payment_method=draft.payment_method.value,
                received_amount=quantize_money(draft.received_amount),
                change_given=quantize_money(draft.change_given),
                status=draft.status.value,
                paid_amount=quantize_money(draft.paid_amount),
                outstanding_amount=quantize_money(draft.outstanding_amount),
                due_date=draft.due_date,
                notes=draft.notes,
            )
            for line in draft.lines:
                sale.lines.append(SaleLine(
                    product_id=line.product_id,
                    product_name=line.product_name,
                    qty=line.quantity,
                    price_tier=int(line.tier),
                    original_unit_price=quantize_money(line.original_unit_price),
                    unit_price=quantize_money(line.unit_price),
                    line_total=quantize_money(line.total_price),
                    applied_promotion_id=line.applied_promotion_id,
                    is_free_gift=line.is_free_gift,
                ))
            session.add(sale)
            session.flush()

            self._create_stock_movement(sale, required, stock_rows)

            if draft.payment_method == PaymentMethod.CREDIT:
                self._add_customer_debt(draft)

            session.commit()
            logger.info(
                f"Sale {sale.receipt_number} stored: grand_total={sale.grand_total}, "
                f"method={sale.payment_method}, lines={len(draft.lines)}"
            )
            return sale

        except (BusinessLogicError, NotFoundError) as e:
            session.rollback()
            raise e
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Failed to store sale {draft.receipt_number}: {e}")
            raise PersistenceError(f'The sale could not be saved: {e}') from e

    # =====================================================
    # PRIVATE HELPERS
    # =====================================================

    def _lock_stocks(self, product_ids) -> Dict[int, ProductStock]:
        """Lock product_stock rows FOR UPDATE and return them by product id."""
        if not product_ids:
            return {}
        rows = (self.session.query(ProductStock)
                .join(Product, Product.id == ProductStock.product_id)
                .filter(ProductStock.product_id.in_(product_ids))
                .with_for_update(of=ProductStock)
                .all())
        return {row.product_id: row for row in rows}

    def _create_stock_movement(self, sale: Sale, required: Dict[int, int], stock_rows: Dict[int, ProductStock]):
        """Decrement stock and record one OUT movement for the sale."""
        move = StockMove(
            type=StockMoveType.OUT,
            reference_type=StockReferenceType.SALE,
            reference_id=sale.id,
            notes=f'Sale {sale.receipt_number}'
        )
        self.session.add(move)
        self.session.flush()

        for product_id, qty in required.items():
            row = stock_rows[product_id]
            before = row.on_hand_qty
            row.on_hand_qty = before - qty
            self.session.add(StockMoveLine(
                stock_move_id=move.id,
                product_id=product_id,
                qty=qty,
                stock_before=before,
                stock_after=row.on_hand_qty,
            ))

    def _add_customer_debt(self, draft: SaleDraft):
        customer = self.session.query(Customer).filter(Customer.id == draft.customer_id).with_for_update().first()
        if customer is None:
            raise NotFoundError('Customer not found.')
        customer.total_debt_amount = quantize_money(
            (customer.total_debt_amount or 0) + quantize_money(draft.outstanding_amount)
        )


def _required_quantities(draft: SaleDraft) -> Dict[int, int]:
    """Total quantity per product across regular and gift lines, in line order."""
    required: Dict[int, int] = OrderedDict()
    for line in draft.lines:
        required[line.product_id] = required.get(line.product_id, 0) + line.quantity
    return required
