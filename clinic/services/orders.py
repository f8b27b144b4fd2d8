from __future__ import annotations

from decimal import Decimal

from django.db import transaction
from django.db.models import F
from rest_framework.exceptions import ValidationError

from clinic.models import CartItem, Medicine, Order, OrderItem
from clinic.services.dates import parse_decimal, parse_int


def add_to_cart(patient, medicine: Medicine, quantity: int = 1) -> CartItem:
    """Add ``quantity`` of a medicine, incrementing an existing cart line."""
    with transaction.atomic():
        item, created = CartItem.objects.select_for_update().get_or_create(
            patient=patient, medicine=medicine, defaults={'quantity': quantity},
        )
        if not created:
            CartItem.objects.filter(pk=item.pk).update(quantity=F('quantity') + quantity)
            item.refresh_from_db()
    return item


def _order_line(raw) -> dict:
    # a bare string is a catalogue id
    if isinstance(raw, str):
        return {'medicine_id': raw}
    if not isinstance(raw, dict):
        raise ValidationError({'items': ['each item must be an object or a medicine id']})
    return raw


def place_order(patient, *, items=None, order_type: str = 'medicine', delivery_address: str = '',
                total_amount=None) -> Order:
    """Create an order with its items; medicine orders also empty the cart.

    When no ``items`` are sent the current cart is ordered.  The total is
    summed from the items unless the client supplies one.
    """
    with transaction.atomic():
        if items:
            lines = []
            for raw in map(_order_line, items):
                medicine = None
                medicine_id = raw.get('medicine_id')
                if medicine_id:
                    medicine = Medicine.objects.filter(medicine_id=medicine_id).first()
                    if medicine is None:
                        raise ValidationError({'items': [f'unknown medicine {medicine_id}']})
                qty = parse_int(raw.get('quantity'), default=1, field='quantity')
                price = parse_decimal(raw.get('price'), default=medicine.mrp if medicine else Decimal('0'),
                                      field='price')
                name = raw.get('item_name') or raw.get('name') or (medicine.name if medicine else '')
                lines.append((medicine, name, qty, price))
        else:
            cart = CartItem.objects.filter(patient=patient).select_related('medicine')
            lines = [(c.medicine, c.medicine.name, c.quantity, c.medicine.mrp) for c in cart]
        if not lines:
            raise ValidationError({'items': ['order has no items']})

        computed = sum((price * qty for _, _, qty, price in lines), Decimal('0'))
        order = Order.objects.create(
            patient=patient,
            order_type=order_type or 'medicine',
            delivery_address=delivery_address or '',
            total_amount=parse_decimal(total_amount, default=computed, field='total_amount'),
        )
        OrderItem.objects.bulk_create([
            OrderItem(order=order, medicine=m, item_name=name, quantity=qty, price=price)
            for m, name, qty, price in lines
        ])
        if order.order_type == 'medicine':
            CartItem.objects.filter(patient=patient).delete()
    return order


def order_dict(order: Order) -> dict:
    return {
        'order_id': order.id,
        'order_type': order.order_type,
        'status': order.status,
        'total_amount': float(order.total_amount),
        'delivery_address': order.delivery_address,
        'created_at': order.created_at.strftime('%Y-%m-%d %H:%M:%S'),
        'items': [
            {
                'medicine_id': i.medicine_id,
                'item_name': i.item_name,
                'quantity': i.quantity,
                'price': float(i.price),
            }
            for i in order.items.all()
        ],
    }
