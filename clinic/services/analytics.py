from datetime import timedelta
from decimal import Decimal
from typing import Optional

from django.db.models import Count, Q, Sum
from django.db.models.functions import TruncMonth
from django.utils import timezone

from clinic.models import Appointment, Doctor, Invoice, Patient
from clinic.services.dates import today

HOURLY_SLOTS = ['9 AM', '10 AM', '11 AM', '12 PM', '2 PM', '3 PM', '4 PM']
WEEKDAYS = ['Mon', 'Tue', 'Wed', 'Thu', 'Fri', 'Sat', 'Sun']


def _appointments(clinic_id: Optional[int] = None):
    qs = Appointment.objects.all()
    if clinic_id:
        qs = qs.filter(clinic_id=clinic_id)
    return qs


def summary_stats(clinic_id: Optional[int] = None) -> dict:
    qs = _appointments(clinic_id)
    if clinic_id:
        total_patients = Patient.objects.filter(appointments__clinic_id=clinic_id).distinct().count()
    else:
        total_patients = Patient.objects.count()
    revenue = qs.aggregate(s=Sum('earnings'))['s'] or Decimal('0')
    return {
        'totalAppointments': qs.count(),
        'totalPatients': total_patients,
        'totalRevenue': float(revenue),
    }


def daily_appointments(clinic_id: Optional[int] = None) -> list[dict]:
    start = today() - timedelta(days=7)
    rows = (
        _appointments(clinic_id).filter(appointment_date__gte=start)
        .values('appointment_date').annotate(count=Count('appointment_id')).order_by('appointment_date')
    )
    return [{'date': r['appointment_date'].strftime('%b %d'), 'count': r['count']} for r in rows]


def revenue_trend(clinic_id: Optional[int] = None) -> list[dict]:
    start = (today().replace(day=1) - timedelta(days=5 * 31)).replace(day=1)
    rows = (
        _appointments(clinic_id).filter(appointment_date__gte=start)
        .annotate(month=TruncMonth('appointment_date')).values('month')
        .annotate(revenue=Sum('earnings')).order_by('month')
    )
    return [{'month': r['month'].strftime('%b'), 'revenue': float(r['revenue'] or 0)} for r in rows]


def visit_distribution(clinic_id: Optional[int] = None) -> list[dict]:
    rows = _appointments(clinic_id).values('appointment_type').annotate(value=Count('appointment_id'))
    return [{'name': r['appointment_type'] or 'General', 'value': r['value']} for r in rows]


def doctor_performance(clinic_id: Optional[int] = None) -> list[dict]:
    flt = Q(appointments__clinic_id=clinic_id) if clinic_id else Q()
    doctors = Doctor.objects.annotate(
        consultations=Count('appointments', filter=flt),
        revenue=Sum('appointments__earnings', filter=flt),
    )
    if clinic_id:
        doctors = doctors.filter(clinics__id=clinic_id)
    rows = [
        {'name': d.full_name, 'consultations': d.consultations, 'revenue': float(d.revenue or 0)}
        for d in doctors
    ]
    return sorted(rows, key=lambda r: r['revenue'], reverse=True)


def charts(clinic_id: Optional[int] = None) -> dict:
    return {
        'dailyAppointments': daily_appointments(clinic_id),
        'revenueTrend': revenue_trend(clinic_id),
        'visitDistribution': visit_distribution(clinic_id),
        'doctorPerformance': doctor_performance(clinic_id),
    }


# ---------------------------------------------------------------------------
# Role dashboard
# ---------------------------------------------------------------------------

def _rupees(amount) -> str:
    return f"₹{amount:,.0f}"


def _scoped_appointments(doctor_id: Optional[int] = None, clinic_id: Optional[int] = None):
    qs = Appointment.objects.all()
    if doctor_id:
        qs = qs.filter(doctor_id=doctor_id)
    if clinic_id:
        qs = qs.filter(clinic_id=clinic_id)
    return qs


def _scoped_invoices(clinic_id: Optional[int] = None):
    qs = Invoice.objects.all()
    if clinic_id:
        qs = qs.filter(clinic_id=clinic_id)
    return qs


def dashboard_stats(role: str, doctor_id: Optional[int] = None, clinic_id: Optional[int] = None) -> dict:
    """Headline numbers; callers pass the doctor or clinic the user is limited to."""
    d = today()
    appts = _scoped_appointments(doctor_id, clinic_id)
    stats = {
        'todaysAppointments': appts.filter(appointment_date=d).count(),
        'activePatients': (
            appts.filter(appointment_date__gte=d - timedelta(days=30)).values('patient_id').distinct().count()
        ),
        'totalRevenue': _rupees(0),
        'pendingPayments': 0,
    }
    since = d - timedelta(days=7)
    if role == 'doctor':
        own = appts.filter(appointment_date__gte=since)
        earned = own.filter(status=Appointment.STATUS_COMPLETED).aggregate(s=Sum('earnings'))['s'] or 0
        stats['totalRevenue'] = _rupees(earned)
        stats['pendingPayments'] = own.filter(status=Appointment.STATUS_SCHEDULED).count()
    elif role in ('admin', 'receptionist', 'clinic'):
        invoices = _scoped_invoices(clinic_id).filter(created_at__date__gte=since)
        stats['totalRevenue'] = _rupees(invoices.aggregate(s=Sum('total_amount'))['s'] or 0)
        stats['pendingPayments'] = invoices.filter(status='pending').count()
    return stats


def _slot_label(t) -> str:
    hour = t.hour
    return f"{hour % 12 or 12} {'PM' if hour >= 12 else 'AM'}"


def hourly_distribution(doctor_id: Optional[int] = None, clinic_id: Optional[int] = None) -> list[dict]:
    qs = _scoped_appointments(doctor_id, clinic_id).filter(appointment_date=today(), appointment_time__isnull=False)
    counts: dict[str, int] = {}
    for t in qs.values_list('appointment_time', flat=True):
        label = _slot_label(t)
        counts[label] = counts.get(label, 0) + 1
    return [{'time': slot, 'count': counts.get(slot, 0)} for slot in HOURLY_SLOTS]


def weekday_revenue(role: str, doctor_id: Optional[int] = None, clinic_id: Optional[int] = None) -> list[dict]:
    since = today() - timedelta(days=6)
    totals = {day: 0.0 for day in WEEKDAYS}
    if role == 'doctor':
        rows = (
            _scoped_appointments(doctor_id, clinic_id)
            .filter(appointment_date__gte=since, status=Appointment.STATUS_COMPLETED)
            .values_list('appointment_date', 'earnings')
        )
    else:
        rows = [
            (timezone.localtime(created).date(), amount)
            for created, amount in _scoped_invoices(clinic_id).filter(created_at__date__gte=since)
            .values_list('created_at', 'total_amount')
        ]
    for day, amount in rows:
        totals[WEEKDAYS[day.weekday()]] += float(amount or 0)
    return [{'day': day, 'revenue': totals[day]} for day in WEEKDAYS]


def recent_appointments(doctor_id: Optional[int] = None, clinic_id: Optional[int] = None,
                        limit: int = 5) -> list[dict]:
    qs = (
        _scoped_appointments(doctor_id, clinic_id).select_related('patient', 'doctor')
        .order_by('-appointment_date', '-appointment_time')[:limit]
    )
    return [
        {
            'appointment_id': a.appointment_id,
            'patient': a.patient.full_name if a.patient_id else 'Unknown',
            'doctor': a.doctor.full_name if a.doctor_id else 'Unknown',
            'date': a.appointment_date.isoformat(),
            'time': a.appointment_time.strftime('%H:%M') if a.appointment_time else None,
            'status': a.status,
        }
        for a in qs
    ]
