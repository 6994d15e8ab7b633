"""Transiciones de estado permitidas para reservas y usuarios."""

from typing import Dict, FrozenSet

from hotel_service.models import ReservationStatus, UserStatus

RESERVATION_TRANSITIONS: Dict[ReservationStatus, FrozenSet[ReservationStatus]] = {
    ReservationStatus.PENDING: frozenset({ReservationStatus.CONFIRMED, ReservationStatus.CANCELLED}),
    ReservationStatus.CONFIRMED: frozenset({ReservationStatus.CANCELLED, ReservationStatus.COMPLETED}),
    ReservationStatus.CANCELLED: frozenset(),
    ReservationStatus.COMPLETED: frozenset(),
}

USER_TRANSITIONS: Dict[UserStatus, FrozenSet[UserStatus]] = {
    UserStatus.ACTIVE: frozenset({UserStatus.DELETED}),
    UserStatus.DELETED: frozenset({UserStatus.ACTIVE}),
}


class TransitionError(ValueError):
    def __init__(self, current, target, allowed):
        self.current = current
        self.target = target
        self.allowed = sorted(s.value for s in allowed)
        super().__init__(f"No se puede pasar de {current.value} a {target.value}.")


def check_reservation_transition(current: ReservationStatus, target: ReservationStatus) -> None:
    allowed = RESERVATION_TRANSITIONS[current]
    if target not in allowed:
        raise TransitionError(current, target, allowed)


def check_user_transition(current: UserStatus, target: UserStatus) -> None:
    """Igual estado que el actual no es un error: el toggle es idempotente para usuarios."""
    if current == target:
        return
    allowed = USER_TRANSITIONS[current]
    if target not in allowed:
        raise TransitionError(current, target, allowed)
