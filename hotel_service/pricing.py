"""Cálculo de noches y total de una reserva según la modalidad (por noche o por rato)."""

import math
from dataclasses import dataclass
from datetime import datetime, timezone

from hotel_service.models import BookingType

MS_PER_DAY = 86_400_000


class PricingError(ValueError):
    """Fechas o modalidad inválidas para la habitación; el mensaje va directo al usuario."""


@dataclass(frozen=True)
class Quote:
    nights: int
    total: float


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def quote(price: float, price_hour: float, booking_type: BookingType, start: datetime, end: datetime) -> Quote:
    """
    Calcula la cotización de una estadía.

    NIGHTLY: noches = techo(diferencia en ms / ms por día), mínimo una noche;
    total = noches * precio por noche.
    HOURLY: tarifa fija `price_hour` sin importar la duración real; exige que la
    salida no sea anterior a la entrada y que la habitación tenga tarifa por rato.

    Raises:
        PricingError: si las fechas o la modalidad no son válidas.
    """
    diff = to_naive_utc(end) - to_naive_utc(start)
    diff_ms = diff.total_seconds() * 1000

    if booking_type == BookingType.HOURLY:
        if diff_ms < 0:
            raise PricingError("La hora de salida no puede ser anterior a la de entrada.")
        if not price_hour or price_hour <= 0:
            raise PricingError("Esta habitación no admite reservas por rato.")
        # Sesión de duración fija: no se prorratea
        return Quote(nights=0, total=price_hour)

    nights = math.ceil(diff_ms / MS_PER_DAY)
    if nights <= 0:
        raise PricingError("La fecha de salida debe ser posterior a la de entrada.")
    return Quote(nights=nights, total=nights * price)
