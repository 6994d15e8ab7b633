"""Pruebas de favoritos (toggle por par usuario-habitación)."""

from hotel_service.models import Favorite


def test_guest_sees_empty_favorites(client):
    """Un invitado recibe una lista de favoritos vacía."""
    r = client.get("/api/favorites")
    assert r.status_code == 200
    assert r.json() == {"favorites": []}


def test_toggle_requires_login(client, room):
    """Marcar favorito sin sesión devuelve 401."""
    r = client.post("/api/favorites", json={"roomId": room.id})
    assert r.status_code == 401


def test_toggle_adds_then_removes(client, client_headers, room, db_session):
    """Dos POST seguidos sobre la misma habitación agregan y luego quitan."""
    r = client.post("/api/favorites", json={"roomId": room.id}, headers=client_headers)
    assert r.status_code == 200, r.text
    assert r.json() == {"action": "added"}

    listing = client.get("/api/favorites", headers=client_headers).json()["favorites"]
    assert len(listing) == 1
    assert listing[0]["room"]["slug"] == room.slug

    r = client.post("/api/favorites", json={"roomId": room.id}, headers=client_headers)
    assert r.json() == {"action": "removed"}
    assert db_session.query(Favorite).count() == 0
    assert client.get("/api/favorites", headers=client_headers).json() == {"favorites": []}


def test_toggle_unknown_room(client, client_headers):
    """Marcar como favorita una habitación inexistente devuelve 404."""
    r = client.post("/api/favorites", json={"roomId": 4321}, headers=client_headers)
    assert r.status_code == 404
