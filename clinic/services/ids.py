"""Generators for the string business identifiers used as primary keys."""
import random
import time

from django.utils import timezone


def _ms() -> int:
    return int(time.time() * 1000)


def patient_id() -> str:
    return f"PAT-{_ms()}-{random.randint(0, 999)}"


def appointment_id(now=None) -> str:
    """``APT-YYMMDD-HHMM-NNNN`` using local time and a random 4 digit suffix."""
    now = timezone.localtime(now or timezone.now())
    return f"APT-{now:%y%m%d}-{now:%H%M}-{random.randint(1000, 9999)}"


def prescription_id() -> str:
    return f"RX-{_ms()}{random.randint(0, 99):02d}"


def lab_order_id() -> str:
    return f"LAB-{_ms()}{random.randint(0, 99):02d}"


def medicine_id() -> str:
    return f"MED-{_ms()}{random.randint(0, 99):02d}"


def invoice_id() -> str:
    return f"INV-{_ms()}{random.randint(0, 99):02d}"
