"""Define las tablas del hotel (usuarios, habitaciones, reservas, reseñas, favoritos, configuración) con SQLAlchemy ORM."""

import enum
from sqlalchemy import (
    Column, Integer, String, Text, Float, ForeignKey, DateTime, JSON, UniqueConstraint,
    Enum as SQLEnum, func,
)
from sqlalchemy.orm import relationship

from hotel_service.db import Base


class UserRole(str, enum.Enum):
    """Roles de usuario. CLIENT es el que se asigna a huéspedes y registros públicos."""
    ADMIN = "ADMIN"
    USER = "USER"
    CLIENT = "CLIENT"


class UserStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    DELETED = "DELETED"  # Borrado lógico


class ClimateType(str, enum.Enum):
    AIRE = "AIRE"
    VENTILADOR = "VENTILADOR"
    NONE = "NONE"


class ReservationStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class BookingType(str, enum.Enum):
    """Modalidad de la estadía: por noche o por rato (tarifa fija)."""
    NIGHTLY = "NIGHTLY"
    HOURLY = "HOURLY"


class User(Base):
    """
    Modelo SQLAlchemy que representa la tabla 'users'.
    El email es único a nivel de base de datos; el teléfono solo está indexado.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    phone = Column(String(30), index=True, nullable=True)
    password = Column(String(255), nullable=False)  # Hash bcrypt
    role = Column(SQLEnum(UserRole), nullable=False, default=UserRole.CLIENT)
    status = Column(SQLEnum(UserStatus), nullable=False, default=UserStatus.ACTIVE)

    # Código de recuperación de contraseña (6 dígitos) y su vencimiento
    reset_token = Column(String(10), nullable=True)
    reset_token_expiry = Column(DateTime, nullable=True)
    last_login = Column(DateTime, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    reservations = relationship("Reservation", back_populates="user", order_by="Reservation.created_at.desc()")
    favorites = relationship("Favorite", back_populates="user")


class Room(Base):
    """
    Modelo SQLAlchemy que representa la tabla 'rooms'.
    `price_hour` en 0 significa que la habitación no admite reservas por rato.
    """
    __tablename__ = "rooms"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    slug = Column(String(255), unique=True, index=True, nullable=False)
    description = Column(Text, nullable=False, default="")
    price = Column(Float, nullable=False)
    price_hour = Column(Float, nullable=False, default=0)
    climate = Column(SQLEnum(ClimateType), nullable=False, default=ClimateType.NONE)
    images = Column(JSON, nullable=False, default=list)
    amenities = Column(JSON, nullable=False, default=list)
    holder = Column(String(100), nullable=False, default="Anfitrión")
    rating = Column(Float, nullable=False, default=5.0)
    reviews = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    reservations = relationship("Reservation", back_populates="room")
    review_items = relationship("Review", back_populates="room")
    favorites = relationship("Favorite", back_populates="room")


class Reservation(Base):
    __tablename__ = "reservations"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=False, index=True)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    guests = Column(Integer, nullable=False, default=1)
    total = Column(Float, nullable=False)
    status = Column(SQLEnum(ReservationStatus), nullable=False, default=ReservationStatus.PENDING)
    type = Column(SQLEnum(BookingType), nullable=False, default=BookingType.NIGHTLY)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="reservations")
    room = relationship("Room", back_populates="reservations")


class Review(Base):
    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True, index=True)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)  # Reseñas anónimas permitidas
    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=False)
    user_name = Column(String(100), nullable=False, default="Anónimo")

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    room = relationship("Room", back_populates="review_items")


class Favorite(Base):
    """Una fila por par (usuario, habitación); su existencia significa 'favorito'."""
    __tablename__ = "favorites"
    __table_args__ = (UniqueConstraint("user_id", "room_id", name="uq_favorites_user_room"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="favorites")
    room = relationship("Room", back_populates="favorites")


DEFAULT_SITE_NAME = "Hostal Acuario"
CONFIGURATION_ID = 1


class Configuration(Base):
    """
    Fila única (id=1) con la marca del sitio, datos de contacto y credenciales
    de terceros (Cloudinary y SMTP). Las credenciales se guardan en texto plano.
    """
    __tablename__ = "configuration"

    id = Column(Integer, primary_key=True, default=CONFIGURATION_ID)
    site_name = Column(String(150), nullable=False, default=DEFAULT_SITE_NAME)
    site_description = Column(Text, nullable=True)
    support_email = Column(String(255), nullable=True)
    logo_url = Column(String(500), nullable=True)
    address = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    hero_image = Column(String(500), nullable=True)
    info_image = Column(String(500), nullable=True)
    gallery_images = Column(JSON, nullable=False, default=list)

    cloudinary_cloud_name = Column(String(150), nullable=True)
    cloudinary_api_key = Column(String(150), nullable=True)
    cloudinary_api_secret = Column(String(150), nullable=True)
    smtp_host = Column(String(255), nullable=True)
    smtp_port = Column(String(10), nullable=True)
    smtp_user = Column(String(255), nullable=True)
    smtp_pass = Column(String(255), nullable=True)

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
