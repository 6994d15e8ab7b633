"""Pruebas del flujo de reservas: invitados, clientes con sesión y cambios de estado."""

from unittest.mock import patch

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from conftest import CLIENT_EMAIL, create_room, create_user
from hotel_service import utils
from hotel_service.models import Reservation, ReservationStatus, User, UserRole


def reservation_body(room_id: int, **overrides) -> dict:
    data = {
        "roomId": room_id,
        "startDate": "2025-03-10T15:00:00Z",
        "endDate": "2025-03-12T15:00:00Z",
        "guests": 2,
        "type": "NIGHTLY",
    }
    data.update(overrides)
    return {"reservationData": data}


GUEST = {"name": "Pedro Invitado", "email": "pedro@example.com", "phone": "3207654321"}


def test_logged_in_nightly_reservation(client, client_headers, client_user, room):
    """Un cliente con sesión reserva por noches y queda PENDING."""
    r = client.post("/api/reservations/create", json=reservation_body(room.id), headers=client_headers)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["success"] is True
    assert body["isNewUser"] is False
    assert body["message"] == "Reserva creada exitosamente"

    reservation = body["reservation"]
    assert reservation["total"] == 300000
    assert reservation["status"] == "PENDING"
    assert reservation["userId"] == client_user.id
    assert reservation["guests"] == 2


def test_check_in_check_out_aliases(client, client_headers, room):
    """checkIn/checkOut se aceptan como alias de las fechas."""
    body = {"reservationData": {
        "roomId": room.id, "checkIn": "2025-03-10T15:00:00", "checkOut": "2025-03-11T12:00:00",
    }}
    r = client.post("/api/reservations/create", json=body, headers=client_headers)
    assert r.status_code == 200, r.text
    assert r.json()["reservation"]["total"] == 150000


def test_hourly_reservation_is_flat_fee(client, client_headers, room):
    """La reserva por rato cobra la tarifa fija de la habitación."""
    body = reservation_body(room.id, type="HOURLY", startDate="2025-03-10T15:00:00Z", endDate="2025-03-10T20:00:00Z")
    r = client.post("/api/reservations/create", json=body, headers=client_headers)
    assert r.status_code == 200, r.text
    assert r.json()["reservation"]["total"] == 40000
    assert r.json()["reservation"]["type"] == "HOURLY"


def test_hourly_on_room_without_hourly_rate(client, client_headers, db_session):
    """Reservar por rato una habitación sin tarifa por rato devuelve 400."""
    room = create_room(db_session, slug="solo-noches", price_hour=0)
    body = reservation_body(room.id, type="HOURLY", endDate="2025-03-10T18:00:00Z")
    r = client.post("/api/reservations/create", json=body, headers=client_headers)
    assert r.status_code == 400
    assert "por rato" in r.json()["error"]


@pytest.mark.parametrize("end_date", ["2025-03-10T15:00:00Z", "2025-03-09T15:00:00Z"])
def test_nightly_invalid_dates(client, client_headers, room, end_date):
    """Fechas sin al menos una noche devuelven 400."""
    r = client.post("/api/reservations/create", json=reservation_body(room.id, endDate=end_date), headers=client_headers)
    assert r.status_code == 400


def test_missing_reservation_data(client, client_headers):
    """Sin reservationData la petición se rechaza."""
    r = client.post("/api/reservations/create", json={}, headers=client_headers)
    assert r.status_code == 400
    assert r.json() == {"error": "Faltan datos de la reserva"}


def test_unknown_room(client, client_headers):
    """Reservar una habitación inexistente devuelve 404."""
    r = client.post("/api/reservations/create", json=reservation_body(9999), headers=client_headers)
    assert r.status_code == 404


def test_guest_without_contact_data(client, room):
    """Un invitado debe enviar nombre, email y teléfono."""
    body = reservation_body(room.id)
    body["userInfo"] = {"name": "Sin Email"}
    r = client.post("/api/reservations/create", json=body)
    assert r.status_code == 400


def test_guest_reservation_creates_client_account(client, room, db_session):
    """Un invitado nuevo queda registrado como CLIENT con su reserva."""
    body = reservation_body(room.id)
    body["userInfo"] = GUEST
    r = client.post("/api/reservations/create", json=body)
    assert r.status_code == 200, r.text
    assert r.json()["isNewUser"] is True

    user = db_session.query(User).filter(User.email == GUEST["email"]).one()
    assert user.role == UserRole.CLIENT
    # La contraseña inicial del invitado es su teléfono
    assert utils.verify_password(GUEST["phone"], user.password)
    assert db_session.query(Reservation).filter(Reservation.user_id == user.id).count() == 1


def test_guest_with_existing_email_or_phone_conflicts(client, room, client_user):
    """Un invitado con email o teléfono ya registrado recibe 409."""
    for info in (
        {**GUEST, "email": CLIENT_EMAIL},
        {**GUEST, "phone": client_user.phone},
    ):
        body = reservation_body(room.id)
        body["userInfo"] = info
        r = client.post("/api/reservations/create", json=body)
        assert r.status_code == 409, r.text
        assert "inicia sesión" in r.json()["error"]


def test_my_reservations(client, client_headers, room):
    """Mis reservas exige sesión y devuelve la habitación resumida."""
    assert client.get("/api/reservations/my-reservations").status_code == 401

    client.post("/api/reservations/create", json=reservation_body(room.id), headers=client_headers)
    r = client.get("/api/reservations/my-reservations", headers=client_headers)
    assert r.status_code == 200
    reservations = r.json()
    assert len(reservations) == 1
    assert reservations[0]["room"]["slug"] == room.slug


def test_get_reservation_owner_admin_and_stranger(client, client_headers, admin_headers, db_session, room):
    """El dueño y el admin ven la reserva; un tercero recibe 401."""
    created = client.post("/api/reservations/create", json=reservation_body(room.id), headers=client_headers).json()
    reservation_id = created["reservation"]["id"]

    assert client.get(f"/api/reservations/{reservation_id}", headers=client_headers).status_code == 200
    r = client.get(f"/api/reservations/{reservation_id}", headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["user"]["email"] == CLIENT_EMAIL
    assert r.json()["room"]["id"] == room.id

    stranger = create_user(db_session, "otro@example.com")
    stranger_headers = {"Authorization": f"Bearer {utils.create_token_for_user(stranger)}"}
    assert client.get(f"/api/reservations/{reservation_id}", headers=stranger_headers).status_code == 401
    assert client.get("/api/reservations/9999", headers=admin_headers).status_code == 404


def test_status_transitions(client, client_headers, admin_headers, room):
    """El admin solo puede aplicar las transiciones de estado permitidas."""
    created = client.post("/api/reservations/create", json=reservation_body(room.id), headers=client_headers).json()
    url = f"/api/reservations/{created['reservation']['id']}"

    # Solo el admin cambia estados
    assert client.patch(url, json={"status": "CONFIRMED"}, headers=client_headers).status_code == 401

    r = client.patch(url, json={"status": "COMPLETED"}, headers=admin_headers)
    assert r.status_code == 409
    assert "CONFIRMED" in r.json()["details"]

    r = client.patch(url, json={"status": "CONFIRMED"}, headers=admin_headers)
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "CONFIRMED"

    r = client.patch(url, json={"status": "COMPLETED"}, headers=admin_headers)
    assert r.json()["status"] == "COMPLETED"

    r = client.patch(url, json={"status": "CANCELLED"}, headers=admin_headers)
    assert r.status_code == 409
    assert "estado final" in r.json()["details"]


def test_admin_deletes_reservation(client, client_headers, admin_headers, db_session, room):
    """Solo el admin elimina reservas."""
    created = client.post("/api/reservations/create", json=reservation_body(room.id), headers=client_headers).json()
    reservation_id = created["reservation"]["id"]

    assert client.delete(f"/api/reservations/{reservation_id}", headers=client_headers).status_code == 401
    r = client.delete(f"/api/reservations/{reservation_id}", headers=admin_headers)
    assert r.status_code == 200
    assert db_session.query(Reservation).filter(Reservation.id == reservation_id).count() == 0


def test_admin_lists_all_reservations(client, client_headers, admin_headers, room):
    """El admin ve todas las reservas."""
    client.post("/api/reservations/create", json=reservation_body(room.id), headers=client_headers)
    r = client.get("/api/admin/reservations", headers=admin_headers)
    assert r.status_code == 200
    assert len(r.json()) == 1
    assert r.json()[0]["status"] == ReservationStatus.PENDING.value


def test_guest_email_race_returns_conflict(client, room, db_session):
    """Si otra petición crea al mismo invitado entre la búsqueda y el INSERT, se responde 409."""
    body = reservation_body(room.id)
    body["userInfo"] = GUEST
    duplicate = IntegrityError("INSERT INTO users", {}, Exception("UNIQUE constraint failed: users.email"))

    with patch.object(Session, "flush", side_effect=duplicate):
        r = client.post("/api/reservations/create", json=body)

    assert r.status_code == 409, r.text
    assert "inicia sesión" in r.json()["error"]
    assert db_session.query(User).filter(User.email == GUEST["email"]).count() == 0
    assert db_session.query(Reservation).count() == 0
