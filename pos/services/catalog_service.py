"""Catalog reads - product, promotion and customer snapshots for the POS."""
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session, joinedload, selectinload

from pos.domain import CustomerSnapshot, ProductSnapshot, Promotion as PromotionSnapshot
from pos.exceptions import NotFoundError
from pos.models import Customer, Product, Promotion
from pos.services.promotion_service import filter_active

logger = logging.getLogger(__name__)


def list_products(session: Session, active_only: bool = True) -> List[ProductSnapshot]:
    """Return product snapshots ordered by name."""
    query = session.query(Product).options(joinedload(Product.stock))
    if active_only:
        query = query.filter(Product.active == True)  # noqa: E712
    return [product.to_snapshot() for product in query.order_by(Product.name, Product.id).all()]


def get_product(session: Session, product_id: int) -> ProductSnapshot:
    product = session.query(Product).options(joinedload(Product.stock)).filter(
        Product.id == product_id,
        Product.active == True  # noqa: E712
    ).first()
    if not product:
        raise NotFoundError('Product not found.')
    return product.to_snapshot()


def list_active_promotions(session: Session, now: Optional[datetime] = None) -> List[PromotionSnapshot]:
    """
    Return promotions active at ``now`` in evaluation order.

    Order is explicit: ``priority`` ascending, then id. Rows that cannot be
    converted to a valid promotion are skipped.
    """
    now = now or datetime.now()
    today = now.date()

    rows = (session.query(Promotion)
            .options(selectinload(Promotion.products))
            .filter(
                Promotion.status == 'active',
                Promotion.start_date <= today,
                Promotion.end_date >= today,
            )
            .order_by(Promotion.priority, Promotion.id)
            .all())

    snapshots = []
    for row in rows:
        snapshot = row.to_snapshot()
        if snapshot is None:
            logger.debug(f"Skipping promotion {row.id}: misconfigured")
            continue
        snapshots.append(snapshot)
    return filter_active(snapshots, now)


def list_customers(session: Session) -> List[CustomerSnapshot]:
    return [c.to_snapshot() for c in session.query(Customer).order_by(Customer.name, Customer.id).all()]


def get_customer(session: Session, customer_id: int) -> CustomerSnapshot:
    customer = session.query(Customer).filter(Customer.id == customer_id).first()
    if not customer:
        raise NotFoundError('Customer not found.')
    return customer.to_snapshot()
