"""Modelos Pydantic (schemas) para validación de datos de entrada/salida en el Hotel Service."""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from hotel_service.models import (
    BookingType, ClimateType, ReservationStatus, UserRole, UserStatus,
)

MAX_IMAGES_PER_ROOM = 4


class CamelModel(BaseModel):
    """Base común: atributos en snake_case, JSON en camelCase (como lo consume el frontend)."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# --- Schemas de Usuario y Autenticación ---

class UserResponse(CamelModel):
    id: int
    name: Optional[str] = None
    email: EmailStr
    phone: Optional[str] = None
    role: UserRole
    status: UserStatus
    created_at: Optional[datetime] = None
    last_login: Optional[datetime] = None


class RegisterRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    name: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)


class LoginRequest(CamelModel):
    email: EmailStr
    password: str


class AuthResponse(CamelModel):
    """Token JWT más los datos públicos del usuario autenticado."""
    token: str
    user: UserResponse


class ProfileUpdate(CamelModel):
    name: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)


class PasswordChangeRequest(CamelModel):
    current_password: str
    new_password: str = Field(..., min_length=6)
    confirm_password: str


class ForgotPasswordRequest(CamelModel):
    email: EmailStr


class ResetPasswordRequest(CamelModel):
    email: EmailStr
    code: str
    new_password: str = Field(..., min_length=6)


class MessageResponse(CamelModel):
    message: str


class UserEnvelope(CamelModel):
    user: UserResponse


# --- Schemas de Habitación ---

class RoomCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=200)
    slug: Optional[str] = Field(None, max_length=255)
    description: str = ""
    price: float = Field(..., ge=0, allow_inf_nan=False)
    price_hour: float = Field(0, ge=0, allow_inf_nan=False)
    climate: ClimateType = ClimateType.NONE
    images: List[str] = Field(default_factory=list, max_length=MAX_IMAGES_PER_ROOM)
    amenities: List[str] = Field(default_factory=list)
    holder: Optional[str] = Field(None, max_length=100)


class RoomUpdate(CamelModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    slug: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    price_hour: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    climate: Optional[ClimateType] = None
    images: Optional[List[str]] = Field(None, max_length=MAX_IMAGES_PER_ROOM)
    amenities: Optional[List[str]] = None
    holder: Optional[str] = Field(None, max_length=100)


class RoomResponse(CamelModel):
    id: int
    title: str
    slug: str
    description: str
    price: float
    price_hour: float
    climate: ClimateType
    images: List[str] = []
    amenities: List[str] = []
    holder: str
    rating: float
    reviews: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class RoomSummary(CamelModel):
    """Subconjunto de la habitación que se muestra en 'Mis reservas'."""
    id: int
    title: str
    slug: str
    images: List[str] = []
    holder: str


class RoomImportRequest(CamelModel):
    rooms: Optional[List[Any]] = None


class RoomImportResult(CamelModel):
    success: bool = True
    imported: int
    failed: int


# --- Schemas de Reserva ---

class GuestInfo(CamelModel):
    """Datos del huésped cuando reserva sin sesión; se validan completos en el endpoint."""
    name: Optional[str] = Field(None, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=30)


class ReservationData(CamelModel):
    room_id: int
    # El frontend envía startDate/endDate o checkIn/checkOut según la pantalla
    start_date: datetime = Field(..., validation_alias=AliasChoices("startDate", "checkIn", "start_date"))
    end_date: datetime = Field(..., validation_alias=AliasChoices("endDate", "checkOut", "end_date"))
    guests: int = Field(1, ge=1)
    type: BookingType = BookingType.NIGHTLY


class ReservationCreateRequest(CamelModel):
    user_info: Optional[GuestInfo] = None
    reservation_data: Optional[ReservationData] = None


class ReservationResponse(CamelModel):
    id: int
    user_id: int
    room_id: int
    start_date: datetime
    end_date: datetime
    guests: int
    total: float
    status: ReservationStatus
    type: BookingType
    created_at: Optional[datetime] = None


class ReservationCreateResponse(CamelModel):
    success: bool = True
    reservation: ReservationResponse
    message: str
    is_new_user: bool


class ReservationDetail(ReservationResponse):
    user: UserResponse
    room: RoomResponse


class MyReservation(ReservationResponse):
    room: RoomSummary


class ReservationStatusUpdate(CamelModel):
    status: ReservationStatus


class UserWithReservations(UserResponse):
    reservations: List[ReservationResponse] = []


# --- Schemas de Reseñas y Favoritos ---

class ReviewCreate(CamelModel):
    rating: int = Field(..., ge=1, le=5)
    comment: str = Field(..., min_length=1)
    room_id: int
    user_name: Optional[str] = Field(None, max_length=100)
    user_id: Optional[int] = None


class ReviewResponse(CamelModel):
    id: int
    room_id: int
    user_id: Optional[int] = None
    rating: int
    comment: str
    user_name: str
    created_at: Optional[datetime] = None


class FavoriteToggle(CamelModel):
    room_id: int


class FavoriteToggleResponse(CamelModel):
    action: str  # 'added' | 'removed'


class FavoriteResponse(CamelModel):
    id: int
    user_id: int
    room_id: int
    created_at: Optional[datetime] = None
    room: RoomResponse


class FavoritesList(CamelModel):
    favorites: List[FavoriteResponse] = []


# --- Schemas de Administración ---

class AdminUserUpdate(CamelModel):
    id: int
    name: Optional[str] = Field(None, max_length=100)
    role: Optional[UserRole] = None
    status: Optional[UserStatus] = None


class PublicConfiguration(CamelModel):
    """Lo que ve cualquier visitante: marca y contacto, nunca credenciales."""
    site_name: str
    site_description: Optional[str] = None
    support_email: Optional[str] = None
    logo_url: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    hero_image: Optional[str] = None
    info_image: Optional[str] = None
    gallery_images: List[str] = []


class AdminConfiguration(PublicConfiguration):
    id: int
    cloudinary_cloud_name: Optional[str] = None
    cloudinary_api_key: Optional[str] = None
    cloudinary_api_secret: Optional[str] = None
    smtp_host: Optional[str] = None
    smtp_port: Optional[str] = None
    smtp_user: Optional[str] = None
    smtp_pass: Optional[str] = None
    updated_at: Optional[datetime] = None


class ConfigurationUpdate(CamelModel):
    site_name: Optional[str] = Field(None, min_length=1, max_length=150)
    site_description: Optional[str] = None
    support_email: Optional[str] = None
    logo_url: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    hero_image: Optional[str] = None
    info_image: Optional[str] = None
    gallery_images: Optional[List[str]] = None
    cloudinary_cloud_name: Optional[str] = None
    cloudinary_api_key: Optional[str] = None
    cloudinary_api_secret: Optional[str] = None
    smtp_host: Optional[str] = None
    smtp_port: Optional[str] = None
    smtp_user: Optional[str] = None
    smtp_pass: Optional[str] = None


class DashboardStats(CamelModel):
    rooms: int
    users: int
    reservations: int
    total_revenue: float
