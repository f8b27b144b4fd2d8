from __future__ import annotations

from decimal import Decimal
from typing import Iterable

from django.db import transaction
from django.db.models import Sum

from clinic.models import Invoice, InvoiceItem, InvoicePayment
from clinic.services import ids
from clinic.services.dates import parse_decimal, parse_int

ZERO = Decimal('0')


def invoice_status(total: Decimal, discount: Decimal, paid: Decimal) -> str:
    """paid once the discounted total is covered, partial for any payment, else pending."""
    if paid >= total - discount:
        return 'paid'
    if paid > ZERO:
        return 'partial'
    return 'pending'


def create_invoice(*, clinic, patient, items: Iterable[dict], appointment=None, discount=None,
                   paid_amount=None, payment_method: str = 'Cash') -> Invoice:
    discount = parse_decimal(discount, default=ZERO, field='discount')
    paid = parse_decimal(paid_amount, default=ZERO, field='paid_amount')
    rows = []
    total = ZERO
    for item in items:
        qty = parse_int(item.get('quantity') or item.get('qty'), default=1, field='quantity')
        rate = parse_decimal(item.get('rate') or item.get('price'), default=ZERO, field='rate')
        amount = rate * qty
        total += amount
        rows.append((item.get('description') or item.get('name') or 'Item', qty, rate, amount))

    with transaction.atomic():
        invoice = Invoice.objects.create(
            invoice_id=ids.invoice_id(),
            clinic=clinic,
            patient=patient,
            appointment=appointment,
            total_amount=total,
            discount=discount,
            status=invoice_status(total, discount, paid),
        )
        InvoiceItem.objects.bulk_create([
            InvoiceItem(invoice=invoice, description=d, quantity=q, rate=r, amount=a) for d, q, r, a in rows
        ])
        if paid > ZERO:
            InvoicePayment.objects.create(invoice=invoice, amount=paid, payment_method=payment_method or 'Cash')
    return invoice


def record_payment(invoice: Invoice, *, amount=None, status=None, payment_method: str = 'Cash') -> Invoice:
    """Add a payment (when given) and recompute or override the invoice status."""
    amount = parse_decimal(amount, default=ZERO, field='amount')
    with transaction.atomic():
        invoice = Invoice.objects.select_for_update().get(pk=invoice.pk)
        if amount > ZERO:
            InvoicePayment.objects.create(invoice=invoice, amount=amount, payment_method=payment_method or 'Cash')
        if status in dict(Invoice.STATUS_CHOICES):
            invoice.status = status
        else:
            invoice.status = invoice_status(invoice.total_amount, invoice.discount, amount_paid(invoice))
        invoice.save(update_fields=['status'])
    return invoice


def amount_paid(invoice: Invoice) -> Decimal:
    return invoice.payments.aggregate(s=Sum('amount'))['s'] or ZERO


def invoice_dict(invoice: Invoice) -> dict:
    paid = amount_paid(invoice)
    return {
        'invoice_id': invoice.invoice_id,
        'patient_id': invoice.patient_id,
        'patient_name': invoice.patient.full_name,
        'appointment_id': invoice.appointment_id,
        'total_amount': float(invoice.total_amount),
        'discount': float(invoice.discount),
        'paid_amount': float(paid),
        'balance': float(invoice.total_amount - invoice.discount - paid),
        'status': invoice.status,
        'created_at': invoice.created_at.strftime('%Y-%m-%d %H:%M:%S'),
        'items': [
            {'description': i.description, 'quantity': i.quantity, 'rate': float(i.rate), 'amount': float(i.amount)}
            for i in invoice.items.all()
        ],
    }
