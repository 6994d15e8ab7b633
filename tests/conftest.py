"""
Configuraciones y fixtures compartidos para las pruebas automatizadas con pytest.
Levanta la app contra SQLite en memoria y recrea las tablas antes de cada prueba.
"""

import os

# Debe definirse antes de importar hotel_service: db.py arma el engine al importarse
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("JWT_SECRET_KEY", "clave_de_pruebas")
os.environ.setdefault("DB_CONNECT_ATTEMPTS", "1")
os.environ.setdefault("DB_CONNECT_WAIT", "0")

import pytest
from fastapi.testclient import TestClient

from hotel_service import utils
from hotel_service.db import Base, SessionLocal, engine
from hotel_service.main import app
from hotel_service.models import ClimateType, Room, User, UserRole, UserStatus

ADMIN_EMAIL = "admin@example.com"
CLIENT_EMAIL = "cliente@example.com"
PASSWORD = "password123"


def auth_headers(token: str) -> dict:
    """Cabeceras de autorización para un token JWT."""
    return {"Authorization": f"Bearer {token}"}


def create_user(db, email: str, role: UserRole = UserRole.CLIENT, password: str = PASSWORD, **extra) -> User:
    user = User(
        email=email,
        password=utils.get_password_hash(password),
        name=extra.pop("name", "Usuario de Prueba"),
        role=role,
        status=extra.pop("status", UserStatus.ACTIVE),
        **extra,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def create_room(db, slug: str = "suite-del-mar", **extra) -> Room:
    fields = {
        "title": "Suite del Mar",
        "description": "Vista al mar y balcón privado",
        "price": 150000,
        "price_hour": 40000,
        "climate": ClimateType.AIRE,
        "images": ["https://img.example.com/suite.jpg"],
        "amenities": ["wifi", "tv"],
        "holder": "Anfitrión",
    }
    fields.update(extra)
    room = Room(slug=slug, **fields)
    db.add(room)
    db.commit()
    db.refresh(room)
    return room


@pytest.fixture(autouse=True)
def reset_database():
    """Cada prueba arranca con las tablas vacías."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def db_session():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def admin_user(db_session):
    return create_user(db_session, ADMIN_EMAIL, role=UserRole.ADMIN, name="Administrador")


@pytest.fixture
def admin_headers(admin_user):
    return auth_headers(utils.create_token_for_user(admin_user))


@pytest.fixture
def client_user(db_session):
    return create_user(db_session, CLIENT_EMAIL, name="Ana Cliente", phone="3001234567")


@pytest.fixture
def client_headers(client_user):
    return auth_headers(utils.create_token_for_user(client_user))


@pytest.fixture
def room(db_session):
    return create_room(db_session)
