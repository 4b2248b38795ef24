"""
Checkout: turns a cart into an order, its items and (when the cart carries
donations) a donation record, all in one transaction.

Payment details are captured on the order but never sent to a processor.
"""
import logging
import random
import string
import time
from decimal import Decimal
from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import donation_models, models, order_models, order_schemas, product_models
from .auth import require_user
from .automation import donation_committed
from .database import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["Orders"])

DEFAULT_CAUSE = 'general'


def generate_order_number() -> str:
    suffix = ''.join(random.choices(string.ascii_uppercase + string.digits, k=9))
    return f"ORD-{int(time.time() * 1000)}-{suffix}"


@router.post('/checkout', response_model=order_schemas.CheckoutResult)
def checkout(
    payload: order_schemas.CheckoutRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_user),
):
    product_ids = {item.product_id for item in payload.items}
    products = {
        p.id: p for p in db.query(product_models.Product).filter(product_models.Product.id.in_(product_ids)).all()
    }
    missing = sorted(product_ids - products.keys())
    if missing:
        raise HTTPException(status_code=400, detail=f"Unknown product(s): {missing}")

    shipping = payload.shipping
    order = order_models.Order(
        user_id=user.id,
        order_number=generate_order_number(),
        status='pending',
        payment_method=payload.payment_method,
        cause=payload.cause,
        shipping_name=shipping.name,
        shipping_line1=shipping.line1,
        shipping_line2=shipping.line2,
        shipping_city=shipping.city,
        shipping_state=shipping.state,
        shipping_postal_code=shipping.postal_code,
        shipping_country=shipping.country,
    )

    subtotal = Decimal('0')
    total_donation = Decimal('0')
    for item in payload.items:
        product = products[item.product_id]
        price = Decimal(product.price)
        donation = item.donation_amount if item.donation_amount is not None else Decimal(product.donation_amount or 0)
        order.items.append(order_models.OrderItem(
            product_id=product.id,
            product_name=product.name,
            product_image=product.image_url,
            size=item.size,
            quantity=item.quantity,
            price=price,
            donation_amount=donation,
        ))
        subtotal += price * item.quantity
        total_donation += donation * item.quantity

    order.subtotal = subtotal
    order.total_donation = total_donation
    order.total = subtotal + total_donation

    donation = None
    try:
        db.add(order)
        if total_donation > 0:
            db.flush()  # need order.id
            donation = donation_models.Donation(
                donor_name=shipping.name,
                amount=total_donation,
                cause=payload.cause or DEFAULT_CAUSE,
                payment_method=payload.payment_method,
                user_id=user.id,
                order_id=order.id,
            )
            db.add(donation)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Checkout failed for user %s", user.id)
        raise HTTPException(status_code=503,
                            detail="There was an error processing your order. Please try again.")

    db.refresh(order)
    logger.info("Order %s placed (total=%s donation=%s)", order.order_number, order.total, order.total_donation)

    check_drop = False
    if donation is not None:
        db.refresh(donation)
        check_drop = donation_committed(donation, background_tasks, request.app)

    return order_schemas.CheckoutResult(
        order=order_schemas.Order.model_validate(order),
        donation_id=donation.id if donation is not None else None,
        check_drop=check_drop,
    )


@router.get('/orders', response_model=List[order_schemas.Order])
def list_orders(db: Session = Depends(get_db), user: models.User = Depends(require_user)):
    return db.query(order_models.Order).filter(
        order_models.Order.user_id == user.id
    ).order_by(order_models.Order.created_at.desc(), order_models.Order.id.desc()).all()
