"""Booking engine configuration read from Django settings."""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
from typing import Any

from django.conf import settings  # type: ignore

from .domain.pricing import FeeSchedule

DEFAULTS: dict[str, Any] = {
    "GUEST_SERVICE_FEE_RATE": "0.12",
    "HOST_SERVICE_FEE_RATE": "0.03",
    "TAX_RATE": "0.08",
    "FREE_CANCELLATION_HOURS": 48,
    "CALENDAR_CONFLICT_RETRIES": 1,
}


def engine_setting(name: str) -> Any:
    """Value of ``settings.BOOKING_ENGINE[name]`` with a built-in default."""

    configured = getattr(settings, "BOOKING_ENGINE", {}) or {}
    if name in configured:
        return configured[name]
    return DEFAULTS[name]


def fee_schedule_from_settings() -> FeeSchedule:
    return FeeSchedule(
        guest_service_fee_rate=Decimal(str(engine_setting("GUEST_SERVICE_FEE_RATE"))),
        host_service_fee_rate=Decimal(str(engine_setting("HOST_SERVICE_FEE_RATE"))),
        tax_rate=Decimal(str(engine_setting("TAX_RATE"))),
    )


def grace_period() -> timedelta:
    return timedelta(hours=int(engine_setting("FREE_CANCELLATION_HOURS")))


def conflict_retries() -> int:
    return max(0, int(engine_setting("CALENDAR_CONFLICT_RETRIES")))
