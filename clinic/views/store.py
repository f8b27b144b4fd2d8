"""
Patient storefront: cart, orders and medicine bookmarks.

Every endpoint resolves the requesting user's patient record first;
rows owned by another patient are reported as missing.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from .. import responses
from ..models import Bookmark, CartItem, Medicine, Order
from ..serializers.pharmacy import CartItemSerializer, MedicineSerializer
from ..services import accounts
from ..services.dates import parse_int
from ..services.orders import add_to_cart, order_dict, place_order


def _patient(request):
    return accounts.find_patient_for_user(request.user)


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------

@api_view(['GET', 'POST', 'DELETE'])
@permission_classes([IsAuthenticated])
def cart(request):
    patient = _patient(request)
    if patient is None:
        return responses.not_found('Patient not found')

    if request.method == 'GET':
        items = CartItem.objects.filter(patient=patient).select_related('medicine').order_by('added_at')
        return responses.success(CartItemSerializer(items, many=True).data, 'Cart retrieved successfully')

    if request.method == 'DELETE':
        CartItem.objects.filter(patient=patient).delete()
        return responses.success(None, 'Cart cleared')

    quantity = parse_int(request.data.get('quantity'), default=1, field='quantity')
    if quantity < 1:
        return responses.bad_request('Quantity must be at least 1')
    medicine = Medicine.objects.filter(medicine_id=request.data.get('medicine_id')).first()
    if medicine is None:
        return responses.not_found('Medicine not found')
    item = add_to_cart(patient, medicine, quantity)
    return responses.success(CartItemSerializer(item).data, 'Item added to cart')


@api_view(['PUT', 'DELETE'])
@permission_classes([IsAuthenticated])
def cart_item(request, item_id: int):
    patient = _patient(request)
    item = CartItem.objects.filter(id=item_id, patient=patient).select_related('medicine').first() if patient else None
    if item is None:
        return responses.not_found('Cart item not found')

    if request.method == 'DELETE':
        item.delete()
        return responses.success(None, 'Item removed from cart')

    quantity = parse_int(request.data.get('quantity'), field='quantity')
    if quantity is None or quantity < 1:
        return responses.bad_request('Quantity must be at least 1')
    item.quantity = quantity
    item.save(update_fields=['quantity'])
    return responses.updated(CartItemSerializer(item).data, 'Cart item updated')


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------

@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def orders(request):
    patient = _patient(request)
    if patient is None:
        return responses.not_found('Patient not found')

    if request.method == 'GET':
        qs = Order.objects.filter(patient=patient).prefetch_related('items').order_by('-created_at')
        return responses.success([order_dict(o) for o in qs], 'Orders retrieved successfully')

    data = request.data
    items = data.get('items')
    if items is not None and not isinstance(items, list):
        return responses.bad_request('items must be a list')
    order = place_order(
        patient,
        items=items,
        order_type=data.get('order_type') or 'medicine',
        delivery_address=data.get('delivery_address') or '',
        total_amount=data.get('total_amount'),
    )
    return responses.created(order_dict(order), 'Order placed successfully')


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def order_detail(request, order_id: int):
    patient = _patient(request)
    order = Order.objects.filter(id=order_id, patient=patient).first() if patient else None
    if order is None:
        return responses.not_found('Order not found')
    return responses.success(order_dict(order), 'Order details retrieved')


@api_view(['PATCH'])
@permission_classes([IsAuthenticated])
def cancel_order(request, order_id: int):
    order = Order.objects.filter(id=order_id).first()
    if order is None:
        return responses.not_found('Order not found')
    patient = _patient(request)
    if patient is None or order.patient_id != patient.patient_id:
        return responses.forbidden('Access denied')
    if order.status != 'pending':
        return responses.bad_request('Only pending orders can be cancelled')
    order.status = 'cancelled'
    order.save(update_fields=['status'])
    return responses.updated(order_dict(order), 'Order cancelled')


# ---------------------------------------------------------------------------
# Bookmarks
# ---------------------------------------------------------------------------

@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def bookmarks(request):
    patient = _patient(request)
    if patient is None:
        return responses.not_found('Patient not found')

    if request.method == 'GET':
        rows = Bookmark.objects.filter(patient=patient).select_related('medicine').order_by('-created_at')
        return responses.success([
            {'id': b.id, 'medicine': MedicineSerializer(b.medicine).data, 'created_at': b.created_at}
            for b in rows
        ], 'Bookmarks retrieved successfully')

    medicine = Medicine.objects.filter(medicine_id=request.data.get('medicine_id')).first()
    if medicine is None:
        return responses.not_found('Medicine not found')
    removed, _ = Bookmark.objects.filter(patient=patient, medicine=medicine).delete()
    if removed:
        return responses.success(None, 'Bookmark removed')
    bookmark = Bookmark.objects.create(patient=patient, medicine=medicine)
    return responses.created({'id': bookmark.id, 'medicine_id': medicine.medicine_id}, 'Medicine bookmarked')
