"""Servicio FastAPI del Hostal Acuario: habitaciones, reservas, clientes, favoritos, reseñas y configuración."""

import logging
import os
import re
import time
from datetime import datetime
from typing import List, Optional

from fastapi import FastAPI, Depends, HTTPException, status, Request, Query, BackgroundTasks
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response, JSONResponse
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from pydantic import EmailStr, TypeAdapter, ValidationError
from sqlalchemy import func, or_, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload
from starlette.exceptions import HTTPException as StarletteHTTPException

from hotel_service import importer, pricing, schemas, slugs, utils, workflow
from hotel_service.db import engine, Base, get_db, SessionLocal
from hotel_service.models import (
    Configuration, Favorite, Reservation, ReservationStatus, Review, Room,
    User, UserRole, UserStatus, CONFIGURATION_ID, DEFAULT_SITE_NAME,
)
from hotel_service.utils import AuthContext, get_auth, require_admin, require_user

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

utils.load_env_vars()

# Crea tablas si no existen al iniciar
try:
    Base.metadata.create_all(bind=engine)
    logger.info("Tablas de base de datos verificadas/creadas.")
except Exception as e:
    logger.error(f"Error al inicializar la base de datos: {e}", exc_info=True)

app = FastAPI(
    title="Hotel Service - Hostal Acuario",
    description="Reservas de habitaciones, área de clientes y back-office de administración.",
    version="1.0.0"
)

# --- Configuración de CORS ---
origins = [o.strip() for o in os.getenv(
    "CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000"
).split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Métricas Prometheus ---
REQUEST_COUNT = Counter("hotel_requests_total", "Total requests", ["method", "endpoint", "status_code"])
REQUEST_LATENCY = Histogram("hotel_request_latency_seconds", "Request latency", ["endpoint"])
RESERVATIONS_CREATED = Counter("hotel_reservations_created_total", "Reservas creadas", ["type"])
ROOMS_IMPORTED = Counter("hotel_rooms_imported_total", "Habitaciones importadas")
ROOMS_IMPORT_FAILED = Counter("hotel_rooms_import_failed_total", "Filas de importación fallidas")

MAX_SLUG_ATTEMPTS = 50

# Mismo tipo que UserResponse.email
ADMIN_EMAIL_ADAPTER = TypeAdapter(EmailStr)

_NUMERIC_SEGMENT = re.compile(r"/\d+(?=/|$)")


@app.middleware("http")
async def metrics_middleware(request: Request, call_next):
    start_time = time.time()
    response = None
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
    except Exception as exc:
        logger.error(f"Middleware error: {exc}", exc_info=True)
        response = JSONResponse(
            status_code=500,
            content={"error": "Error interno del servidor", "details": str(exc)},
        )
    finally:
        latency = time.time() - start_time
        # /api/admin/rooms/12 -> /api/admin/rooms/{id}
        endpoint = _NUMERIC_SEGMENT.sub("/{id}", request.url.path)
        final_status_code = getattr(response, 'status_code', status_code)
        REQUEST_LATENCY.labels(endpoint=endpoint).observe(latency)
        REQUEST_COUNT.labels(method=request.method, endpoint=endpoint, status_code=final_status_code).inc()
    return response


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Todas las respuestas de error salen como {"error": ..., "details"?: ...}."""
    content = exc.detail if isinstance(exc.detail, dict) else {"error": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    details = "; ".join(
        f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg')}" for err in exc.errors()
    )
    logger.warning(f"Error de validación en {request.url.path}: {details}")
    return JSONResponse(status_code=400, content={"error": "Datos inválidos", "details": details})


@app.on_event("startup")
def startup_event():
    """Garantiza un administrador inicial si ADMIN_EMAIL y ADMIN_PASSWORD están definidos."""
    admin_email = os.getenv("ADMIN_EMAIL")
    admin_password = os.getenv("ADMIN_PASSWORD")
    if not admin_email or not admin_password or SessionLocal is None:
        return
    try:
        admin_email = ADMIN_EMAIL_ADAPTER.validate_python(admin_email)
    except ValidationError as e:
        logger.error(f"ADMIN_EMAIL inválido, no se crea el administrador inicial: {e}")
        return
    db = SessionLocal()
    try:
        if not db.query(User).filter(User.email == admin_email).first():
            db.add(User(
                name="Administrador",
                email=admin_email,
                password=utils.get_password_hash(admin_password),
                role=UserRole.ADMIN,
                status=UserStatus.ACTIVE,
            ))
            db.commit()
            logger.info(f"Administrador inicial creado: {admin_email}")
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"No se pudo crear el administrador inicial: {e}", exc_info=True)
    finally:
        db.close()


# --- Endpoints de Salud y Métricas ---
@app.get("/metrics", tags=["Monitoring"])
def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/health", tags=["Monitoring"])
def health_check():
    try:
        db = SessionLocal()
        db.execute(text("SELECT 1"))
        db.close()
    except Exception as e:
        logger.error(f"Health check fallido - Error de BD: {e}", exc_info=True)
        raise HTTPException(status_code=503, detail=f"Database connection error: {e}")
    return {"status": "ok", "service": "hotel_service", "database": "ok"}


# --- Funciones Auxiliares ---

def internal_error(message: str, exc: Exception) -> HTTPException:
    """500 con el mensaje crudo adjunto para depuración."""
    return HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, {"error": message, "details": str(exc)})


def get_room_or_404(db: Session, room_id: int) -> Room:
    room = db.query(Room).filter(Room.id == room_id).first()
    if not room:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Habitación no encontrada")
    return room


def get_reservation_or_404(db: Session, reservation_id: int) -> Reservation:
    reservation = db.query(Reservation).options(
        joinedload(Reservation.user), joinedload(Reservation.room)
    ).filter(Reservation.id == reservation_id).first()
    if not reservation:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Reserva no encontrada")
    return reservation


def get_user_or_404(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Usuario no encontrado")
    return user


def get_or_create_configuration(db: Session) -> Configuration:
    """Lee la fila única de configuración (id=1) y la crea con valores por defecto si no existe."""
    config = db.query(Configuration).filter(Configuration.id == CONFIGURATION_ID).first()
    if config:
        return config

    logger.info("Configuración inexistente, creando fila por defecto.")
    config = Configuration(id=CONFIGURATION_ID, site_name=DEFAULT_SITE_NAME, gallery_images=[])
    db.add(config)
    try:
        db.commit()
    except IntegrityError:
        # Otra petición la creó primero
        db.rollback()
        return db.query(Configuration).filter(Configuration.id == CONFIGURATION_ID).one()
    db.refresh(config)
    return config


def normalize_gallery(images: Optional[List[str]]) -> List[str]:
    """URLs de la galería sin espacios en los extremos y sin entradas vacías."""
    return [image.strip() for image in images or [] if image and image.strip()]


def insert_room_with_unique_slug(db: Session, base_slug: str, fields: dict) -> Room:
    """
    Inserta la habitación probando `base`, `base-1`, `base-2`, ...

    La restricción UNIQUE de `rooms.slug` es la que detecta la colisión: no se
    consulta antes de insertar, así dos altas simultáneas no pueden duplicar el slug.
    """
    for attempt, candidate in enumerate(slugs.candidates(base_slug)):
        if attempt >= MAX_SLUG_ATTEMPTS:
            raise HTTPException(status.HTTP_409_CONFLICT, f"No se encontró un slug libre para '{base_slug}'.")

        room = Room(slug=candidate, **fields)
        db.add(room)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            if not db.query(Room.id).filter(Room.slug == candidate).first():
                raise
            logger.info(f"Slug '{candidate}' ocupado, probando el siguiente.")
            continue
        db.refresh(room)
        return room


def refresh_room_rating(db: Session, room_id: int) -> None:
    avg_rating, count = db.query(func.avg(Review.rating), func.count(Review.id)).filter(
        Review.room_id == room_id
    ).one()
    db.query(Room).filter(Room.id == room_id).update(
        {Room.rating: float(avg_rating or 0), Room.reviews: int(count or 0)},
        synchronize_session=False,
    )


# --- Endpoints de Autenticación ---

@app.post("/api/auth/register", response_model=schemas.AuthResponse, status_code=status.HTTP_201_CREATED, tags=["Authentication"])
def register(body: schemas.RegisterRequest, db: Session = Depends(get_db)):
    logger.info(f"Registro iniciado para: {body.email}")

    if db.query(User).filter(User.email == body.email).first():
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "El usuario ya existe")

    user = User(
        email=body.email,
        password=utils.get_password_hash(body.password),
        name=body.name,
        phone=body.phone,
        role=UserRole.CLIENT,
        status=UserStatus.ACTIVE,
    )
    try:
        db.add(user)
        db.commit()
        db.refresh(user)
    except IntegrityError:
        db.rollback()
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "El usuario ya existe")

    return {"token": utils.create_token_for_user(user), "user": user}


@app.post("/api/auth/login", response_model=schemas.AuthResponse, tags=["Authentication"])
def login(body: schemas.LoginRequest, db: Session = Depends(get_db)):
    logger.info(f"Login attempt for user: {body.email}")
    user = db.query(User).filter(User.email == body.email).first()

    if not user:
        logger.warning(f"Login failed for user: {body.email}")
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Credenciales inválidas")

    if user.status == UserStatus.DELETED:
        logger.warning(f"Login de cuenta desactivada: {body.email}")
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Esta cuenta ha sido desactivada. Contacta al administrador.")

    if not utils.verify_password(body.password, user.password):
        logger.warning(f"Login failed for user: {body.email}")
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Credenciales inválidas")

    user.last_login = datetime.utcnow()
    db.commit()
    db.refresh(user)

    logger.info(f"Login successful for user_id: {user.id}")
    return {"token": utils.create_token_for_user(user), "user": user}


@app.get("/api/auth/me", response_model=schemas.UserWithReservations, tags=["Authentication"])
def get_me(auth: AuthContext = Depends(require_user), db: Session = Depends(get_db)):
    return get_user_or_404(db, auth.user_id)


@app.put("/api/auth/update", response_model=schemas.UserEnvelope, tags=["Authentication"])
def update_profile(body: schemas.ProfileUpdate, auth: AuthContext = Depends(require_user), db: Session = Depends(get_db)):
    user = get_user_or_404(db, auth.user_id)
    if body.name is not None:
        user.name = body.name
    if body.phone is not None:
        user.phone = body.phone
    db.commit()
    db.refresh(user)
    return {"user": user}


@app.delete("/api/auth/update", response_model=schemas.MessageResponse, tags=["Authentication"])
def deactivate_own_account(auth: AuthContext = Depends(require_user), db: Session = Depends(get_db)):
    """Borrado lógico de la propia cuenta."""
    user = get_user_or_404(db, auth.user_id)
    user.status = UserStatus.DELETED
    db.commit()
    logger.info(f"Usuario {user.id} desactivó su cuenta.")
    return {"message": "Cuenta desactivada exitosamente"}


@app.post("/api/auth/change-password", response_model=schemas.MessageResponse, tags=["Authentication"])
def change_password(body: schemas.PasswordChangeRequest, auth: AuthContext = Depends(require_user), db: Session = Depends(get_db)):
    """Cambia la contraseña del usuario validando la actual."""
    user = get_user_or_404(db, auth.user_id)

    if not utils.verify_password(body.current_password, user.password):
        logger.warning(f"Fallo cambio de password user {user.id}: Password actual incorrecto")
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "La contraseña actual es incorrecta.")
    if body.new_password != body.confirm_password:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Las contraseñas no coinciden")

    user.password = utils.get_password_hash(body.new_password)
    db.commit()
    logger.info(f"Contraseña actualizada exitosamente para user {user.id}")
    return {"message": "Contraseña actualizada correctamente"}


@app.post("/api/auth/forgot-password", response_model=schemas.MessageResponse, tags=["Authentication"])
def forgot_password(body: schemas.ForgotPasswordRequest, background_tasks: BackgroundTasks, db: Session = Depends(get_db)):
    config = db.query(Configuration).filter(Configuration.id == CONFIGURATION_ID).first()
    settings = utils.smtp_settings(config)
    if settings is None:
        logger.error("SMTP configuration missing in DB and environment")
        raise HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, "System email misconfiguration")

    # Misma respuesta exista o no el correo, para no revelar cuentas registradas
    neutral = {"message": "Si el correo existe, se ha enviado un código."}

    user = db.query(User).filter(User.email == body.email).first()
    if not user:
        return neutral

    code = utils.generate_reset_code()
    user.reset_token = code
    user.reset_token_expiry = utils.reset_code_expiry()
    db.commit()

    background_tasks.add_task(utils.send_reset_code_email, settings, user.email, user.name, code)
    return neutral


@app.post("/api/auth/reset-password", response_model=schemas.MessageResponse, tags=["Authentication"])
def reset_password(body: schemas.ResetPasswordRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == body.email).first()
    if not user:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Usuario no encontrado")

    if (
        not user.reset_token
        or user.reset_token != body.code
        or not user.reset_token_expiry
        or datetime.utcnow() > user.reset_token_expiry
    ):
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Código inválido o expirado")

    user.password = utils.get_password_hash(body.new_password)
    user.reset_token = None
    user.reset_token_expiry = None
    db.commit()
    return {"message": "Contraseña actualizada correctamente"}


# --- Endpoints Públicos de Habitaciones, Reseñas y Configuración ---

@app.get("/api/rooms", response_model=List[schemas.RoomResponse], tags=["Rooms"])
def list_rooms(q: Optional[str] = None, db: Session = Depends(get_db)):
    query = db.query(Room)
    if q:
        pattern = f"%{q}%"
        query = query.filter(or_(Room.title.ilike(pattern), Room.description.ilike(pattern)))
    return query.order_by(Room.created_at.desc(), Room.id.desc()).all()


@app.get("/api/rooms/{slug}", response_model=schemas.RoomResponse, tags=["Rooms"])
def get_room_by_slug(slug: str, db: Session = Depends(get_db)):
    room = db.query(Room).filter(Room.slug == slug).first()
    if not room:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Habitación no encontrada")
    return room


@app.get("/api/reviews", response_model=List[schemas.ReviewResponse], tags=["Reviews"])
def list_reviews(room_id: Optional[int] = Query(None, alias="roomId"), db: Session = Depends(get_db)):
    if room_id is None:
        return []
    return db.query(Review).filter(Review.room_id == room_id).order_by(Review.created_at.desc(), Review.id.desc()).all()


@app.post("/api/reviews", response_model=schemas.ReviewResponse, status_code=status.HTTP_201_CREATED, tags=["Reviews"])
def create_review(body: schemas.ReviewCreate, db: Session = Depends(get_db)):
    """Crea la reseña y recalcula el promedio y el conteo de la habitación."""
    get_room_or_404(db, body.room_id)

    review = Review(
        room_id=body.room_id,
        user_id=body.user_id,
        rating=body.rating,
        comment=body.comment,
        user_name=body.user_name or "Anónimo",
    )
    try:
        db.add(review)
        db.flush()
        refresh_room_rating(db, body.room_id)
        db.commit()
        db.refresh(review)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error creando reseña para habitación {body.room_id}: {e}", exc_info=True)
        raise internal_error("Error creando la reseña", e)
    return review


@app.get("/api/config", response_model=schemas.PublicConfiguration, tags=["Configuration"])
def get_public_config(db: Session = Depends(get_db)):
    return get_or_create_configuration(db)


# --- Endpoints del Área de Clientes ---

@app.get("/api/favorites", response_model=schemas.FavoritesList, tags=["Favorites"])
def list_favorites(auth: Optional[AuthContext] = Depends(get_auth), db: Session = Depends(get_db)):
    if auth is None:
        return {"favorites": []}

    favorites = db.query(Favorite).options(joinedload(Favorite.room)).filter(
        Favorite.user_id == auth.user_id
    ).order_by(Favorite.created_at.desc(), Favorite.id.desc()).all()
    logger.info(f"{len(favorites)} favoritos para user_id {auth.user_id}")
    return {"favorites": favorites}


@app.post("/api/favorites", response_model=schemas.FavoriteToggleResponse, tags=["Favorites"])
def toggle_favorite(body: schemas.FavoriteToggle, auth: AuthContext = Depends(require_user), db: Session = Depends(get_db)):
    """Si el par (usuario, habitación) existe lo quita; si no, lo agrega."""
    get_room_or_404(db, body.room_id)

    existing = db.query(Favorite).filter(
        Favorite.user_id == auth.user_id, Favorite.room_id == body.room_id
    ).first()

    if existing:
        db.delete(existing)
        db.commit()
        logger.info(f"Favorito eliminado: user {auth.user_id}, room {body.room_id}")
        return {"action": "removed"}

    try:
        db.add(Favorite(user_id=auth.user_id, room_id=body.room_id))
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status.HTTP_409_CONFLICT, "El favorito fue modificado por otra petición.")
    logger.info(f"Favorito creado: user {auth.user_id}, room {body.room_id}")
    return {"action": "added"}


@app.get("/api/reservations/my-reservations", response_model=List[schemas.MyReservation], tags=["Reservations"])
def my_reservations(auth: Optional[AuthContext] = Depends(get_auth), db: Session = Depends(get_db)):
    if auth is None:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Debes iniciar sesión para ver tus reservas.")
    return db.query(Reservation).options(joinedload(Reservation.room)).filter(
        Reservation.user_id == auth.user_id
    ).order_by(Reservation.created_at.desc(), Reservation.id.desc()).all()


# --- Endpoints de Reservas ---

@app.post("/api/reservations/create", response_model=schemas.ReservationCreateResponse, tags=["Reservations"])
def create_reservation(
    body: schemas.ReservationCreateRequest,
    auth: Optional[AuthContext] = Depends(get_auth),
    db: Session = Depends(get_db),
):
    """
    Crea una reserva PENDING.

    Con sesión se usa el usuario autenticado. Sin sesión se exigen nombre, email y
    teléfono: si ya hay una cuenta con ese email o teléfono se responde 409 para que
    inicie sesión; si no, se crea un cliente cuya contraseña inicial es su teléfono.
    """
    data = body.reservation_data
    if data is None:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Faltan datos de la reserva")

    guest = body.user_info
    if auth is None and not (guest and guest.name and guest.email and guest.phone):
        raise HTTPException(
            status.HTTP_400_BAD_REQUEST,
            "Para reservar como invitado, necesitamos tu nombre, email y teléfono.",
        )

    room = db.query(Room).filter(Room.id == data.room_id).first()
    if not room:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "La habitación seleccionada no existe.")

    try:
        quote = pricing.quote(room.price, room.price_hour, data.type, data.start_date, data.end_date)
    except pricing.PricingError as e:
        logger.warning(f"Reserva rechazada para habitación {room.id}: {e}")
        raise HTTPException(status.HTTP_400_BAD_REQUEST, str(e))

    if auth is not None:
        user_id = auth.user_id
    else:
        existing = db.query(User).filter(or_(User.email == guest.email, User.phone == guest.phone)).first()
        if existing:
            logger.warning(f"Invitado con email/teléfono ya registrado: {guest.email}")
            raise HTTPException(
                status.HTTP_409_CONFLICT,
                "Ya existe una cuenta registrada con este email o teléfono. Por favor inicia sesión para continuar.",
            )

        new_user = User(
            name=guest.name,
            email=guest.email,
            phone=guest.phone,
            password=utils.get_password_hash(guest.phone),
            role=UserRole.CLIENT,
            status=UserStatus.ACTIVE,
        )
        db.add(new_user)
        try:
            db.flush()
        except IntegrityError:
            # Dos reservas simultáneas del mismo invitado: la segunda choca con el UNIQUE del email
            db.rollback()
            raise HTTPException(
                status.HTTP_409_CONFLICT,
                "Ya existe una cuenta registrada con este email o teléfono. Por favor inicia sesión para continuar.",
            )
        user_id = new_user.id
        logger.info(f"Cliente invitado creado: user_id {user_id}")

    reservation = Reservation(
        user_id=user_id,
        room_id=room.id,
        start_date=pricing.to_naive_utc(data.start_date),
        end_date=pricing.to_naive_utc(data.end_date),
        guests=data.guests,
        total=quote.total,
        status=ReservationStatus.PENDING,
        type=data.type,
    )
    try:
        db.add(reservation)
        db.commit()
        db.refresh(reservation)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error guardando reserva para habitación {room.id}: {e}", exc_info=True)
        raise internal_error("Error interno del servidor al procesar la reserva.", e)

    RESERVATIONS_CREATED.labels(type=data.type.value).inc()
    logger.info(f"Reserva {reservation.id} creada: room {room.id}, user {user_id}, total {quote.total}")

    return {
        "success": True,
        "reservation": reservation,
        "message": "Reserva creada exitosamente",
        "is_new_user": auth is None,
    }


@app.get("/api/reservations/{reservation_id}", response_model=schemas.ReservationDetail, tags=["Reservations"])
def get_reservation(reservation_id: int, auth: AuthContext = Depends(require_user), db: Session = Depends(get_db)):
    reservation = get_reservation_or_404(db, reservation_id)
    if not auth.is_admin and reservation.user_id != auth.user_id:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Unauthorized")
    return reservation


@app.patch("/api/reservations/{reservation_id}", response_model=schemas.ReservationDetail, tags=["Reservations"])
def update_reservation_status(
    reservation_id: int,
    body: schemas.ReservationStatusUpdate,
    auth: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    reservation = get_reservation_or_404(db, reservation_id)

    try:
        workflow.check_reservation_transition(reservation.status, body.status)
    except workflow.TransitionError as e:
        logger.warning(f"Transición inválida en reserva {reservation_id}: {e}")
        raise HTTPException(status.HTTP_409_CONFLICT, {
            "error": str(e),
            "details": f"Estados permitidos: {', '.join(e.allowed) or 'Ninguno (estado final)'}",
        })

    reservation.status = body.status
    db.commit()
    db.refresh(reservation)
    logger.info(f"Reserva {reservation_id} -> {body.status.value} (admin {auth.user_id})")
    return reservation


@app.delete("/api/reservations/{reservation_id}", tags=["Reservations"])
def delete_reservation(reservation_id: int, auth: AuthContext = Depends(require_admin), db: Session = Depends(get_db)):
    reservation = get_reservation_or_404(db, reservation_id)
    try:
        db.delete(reservation)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error eliminando reserva {reservation_id}: {e}", exc_info=True)
        raise internal_error("Error al eliminar la reserva", e)
    logger.info(f"Reserva {reservation_id} eliminada por admin {auth.user_id}")
    return {"success": True, "message": "Reserva eliminada"}


# --- Endpoints de Administración: Habitaciones ---

@app.get("/api/admin/rooms", response_model=List[schemas.RoomResponse], tags=["Admin"])
def admin_list_rooms(auth: AuthContext = Depends(require_admin), db: Session = Depends(get_db)):
    return db.query(Room).order_by(Room.created_at.desc(), Room.id.desc()).all()


@app.post("/api/admin/rooms", response_model=schemas.RoomResponse, status_code=status.HTTP_201_CREATED, tags=["Admin"])
def admin_create_room(body: schemas.RoomCreate, auth: AuthContext = Depends(require_admin), db: Session = Depends(get_db)):
    base_slug = slugs.slugify(body.slug or body.title)
    logger.info(f"Admin {auth.user_id} creando habitación '{body.title}' (slug base '{base_slug}')")

    fields = {
        "title": body.title,
        "description": body.description,
        "price": body.price,
        "price_hour": body.price_hour or 0,
        "climate": body.climate,
        "images": body.images,
        "amenities": body.amenities,
        "holder": body.holder or "Anfitrión",
        "rating": 5.0,
        "reviews": 0,
    }
    return insert_room_with_unique_slug(db, base_slug, fields)


@app.post("/api/admin/rooms/import", response_model=schemas.RoomImportResult, tags=["Admin"])
def admin_import_rooms(body: schemas.RoomImportRequest, auth: AuthContext = Depends(require_admin), db: Session = Depends(get_db)):
    """
    Importa filas sueltas (CSV ya convertido a JSON). Cada fila se guarda por
    separado: una fila inválida se cuenta como fallida y el lote continúa.
    """
    if not body.rooms:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "No rooms data provided")

    imported = 0
    failed = 0
    for index, row in enumerate(body.rooms, start=1):
        try:
            fields = importer.map_row(row)
            db.add(Room(slug=slugs.import_slug(fields["title"]), rating=5.0, reviews=0, **fields))
            db.commit()
            imported += 1
        except (importer.ImportRowError, SQLAlchemyError) as e:
            db.rollback()
            failed += 1
            logger.warning(f"Fila {index} no importada: {e}")

    ROOMS_IMPORTED.inc(imported)
    ROOMS_IMPORT_FAILED.inc(failed)
    logger.info(f"Importación terminada por admin {auth.user_id}: {imported} importadas, {failed} fallidas")
    return {"success": True, "imported": imported, "failed": failed}


@app.get("/api/admin/rooms/{room_id}", response_model=schemas.RoomResponse, tags=["Admin"])
def admin_get_room(room_id: int, auth: AuthContext = Depends(require_admin), db: Session = Depends(get_db)):
    return get_room_or_404(db, room_id)


@app.put("/api/admin/rooms/{room_id}", response_model=schemas.RoomResponse, tags=["Admin"])
def admin_update_room(room_id: int, body: schemas.RoomUpdate, auth: AuthContext = Depends(require_admin), db: Session = Depends(get_db)):
    room = get_room_or_404(db, room_id)

    changes = body.model_dump(exclude_unset=True)
    if changes.get("slug"):
        changes["slug"] = slugs.slugify(changes["slug"])
    else:
        changes.pop("slug", None)

    for field, value in changes.items():
        # null en un campo obligatorio se ignora
        if value is None:
            continue
        setattr(room, field, value)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status.HTTP_409_CONFLICT, "El slug ya está en uso por otra habitación.")
    db.refresh(room)
    logger.info(f"Habitación {room_id} actualizada por admin {auth.user_id}")
    return room


@app.delete("/api/admin/rooms/{room_id}", tags=["Admin"])
def admin_delete_room(room_id: int, auth: AuthContext = Depends(require_admin), db: Session = Depends(get_db)):
    """Elimina la habitación junto con sus reservas, reseñas y favoritos en una sola transacción."""
    get_room_or_404(db, room_id)
    try:
        db.query(Reservation).filter(Reservation.room_id == room_id).delete(synchronize_session=False)
        db.query(Review).filter(Review.room_id == room_id).delete(synchronize_session=False)
        db.query(Favorite).filter(Favorite.room_id == room_id).delete(synchronize_session=False)
        db.query(Room).filter(Room.id == room_id).delete(synchronize_session=False)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error eliminando habitación {room_id}: {e}", exc_info=True)
        raise internal_error("Error eliminando la habitación", e)
    logger.info(f"Habitación {room_id} eliminada por admin {auth.user_id}")
    return {"success": True}


# --- Endpoints de Administración: Reservas, Clientes, Configuración ---

@app.get("/api/admin/reservations", response_model=List[schemas.ReservationDetail], tags=["Admin"])
def admin_list_reservations(auth: AuthContext = Depends(require_admin), db: Session = Depends(get_db)):
    return db.query(Reservation).options(
        joinedload(Reservation.user), joinedload(Reservation.room)
    ).order_by(Reservation.created_at.desc(), Reservation.id.desc()).all()


@app.get("/api/admin/users", response_model=List[schemas.UserResponse], tags=["Admin"])
def admin_list_users(auth: AuthContext = Depends(require_admin), db: Session = Depends(get_db)):
    return db.query(User).order_by(User.created_at.desc(), User.id.desc()).all()


@app.put("/api/admin/users", response_model=schemas.UserResponse, tags=["Admin"])
def admin_update_user(body: schemas.AdminUserUpdate, auth: AuthContext = Depends(require_admin), db: Session = Depends(get_db)):
    user = get_user_or_404(db, body.id)

    if body.status is not None:
        try:
            workflow.check_user_transition(user.status, body.status)
        except workflow.TransitionError as e:
            raise HTTPException(status.HTTP_409_CONFLICT, str(e))
        user.status = body.status
    if body.name is not None:
        user.name = body.name
    if body.role is not None:
        user.role = body.role

    db.commit()
    db.refresh(user)
    logger.info(f"Usuario {user.id} actualizado por admin {auth.user_id}")
    return user


@app.delete("/api/admin/users", tags=["Admin"])
def admin_delete_user(
    id: Optional[int] = None,
    permanent: bool = False,
    auth: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Borrado lógico (status=DELETED) por defecto. Con permanent=true elimina al
    usuario junto con sus reservas y favoritos; sus reseñas quedan anónimas.
    """
    if id is None:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "ID required")
    user = get_user_or_404(db, id)

    if not permanent:
        workflow.check_user_transition(user.status, UserStatus.DELETED)
        user.status = UserStatus.DELETED
        db.commit()
        db.refresh(user)
        logger.info(f"Usuario {id} desactivado por admin {auth.user_id}")
        return schemas.UserResponse.model_validate(user).model_dump(by_alias=True, mode="json")

    try:
        db.query(Reservation).filter(Reservation.user_id == id).delete(synchronize_session=False)
        db.query(Favorite).filter(Favorite.user_id == id).delete(synchronize_session=False)
        db.query(Review).filter(Review.user_id == id).update({Review.user_id: None}, synchronize_session=False)
        db.query(User).filter(User.id == id).delete(synchronize_session=False)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error eliminando usuario {id}: {e}", exc_info=True)
        raise internal_error("Error eliminando el usuario", e)
    logger.info(f"Usuario {id} eliminado permanentemente por admin {auth.user_id}")
    return {"success": True, "id": id, "permanent": True}


@app.get("/api/admin/config", response_model=schemas.AdminConfiguration, tags=["Admin"])
def admin_get_config(auth: AuthContext = Depends(require_admin), db: Session = Depends(get_db)):
    return get_or_create_configuration(db)


@app.put("/api/admin/config", response_model=schemas.AdminConfiguration, tags=["Admin"])
def admin_update_config(body: schemas.ConfigurationUpdate, auth: AuthContext = Depends(require_admin), db: Session = Depends(get_db)):
    """Actualiza solo los campos enviados; los omitidos conservan su valor."""
    config = get_or_create_configuration(db)
    for field, value in body.model_dump(exclude_unset=True).items():
        if field == "gallery_images":
            value = normalize_gallery(value)
        setattr(config, field, value)
    config.updated_at = datetime.utcnow()
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error updating config: {e}", exc_info=True)
        raise internal_error("Error updating configuration", e)
    db.refresh(config)
    return config


@app.get("/api/admin/stats", response_model=schemas.DashboardStats, tags=["Admin"])
def admin_stats(auth: AuthContext = Depends(require_admin), db: Session = Depends(get_db)):
    return {
        "rooms": db.query(func.count(Room.id)).scalar() or 0,
        "users": db.query(func.count(User.id)).scalar() or 0,
        "reservations": db.query(func.count(Reservation.id)).scalar() or 0,
        "total_revenue": float(db.query(func.coalesce(func.sum(Reservation.total), 0)).scalar() or 0),
    }
