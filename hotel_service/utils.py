"""Funciones de utilidad del Hotel Service: configuración, hash de contraseñas, JWT, autenticación y correo."""

import os
import logging
import secrets
import smtplib
from email.message import EmailMessage
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from fastapi import Depends, Header, HTTPException, status
from passlib.context import CryptContext
from jose import JWTError, jwt
from pydantic import BaseModel
from dotenv import load_dotenv
from sqlalchemy.orm import Session

from hotel_service.db import get_db
from hotel_service.models import Configuration, User, UserRole, UserStatus

# Carga variables de entorno desde .env
load_dotenv()

# Configuración del logger
logger = logging.getLogger(__name__)


def load_env_vars():
    """
    Verifica que las variables de entorno recomendadas estén definidas.
    Solo registra advertencias: el servicio arranca con valores por defecto de desarrollo.
    """
    recommended_vars = ["JWT_SECRET_KEY", "DATABASE_URL", "SMTP_HOST", "ADMIN_EMAIL", "ADMIN_PASSWORD"]
    missing = [var for var in recommended_vars if not os.getenv(var)]
    if missing:
        logger.warning(f"Variables de entorno no definidas (se usan valores por defecto): {', '.join(missing)}")
    else:
        logger.info("Variables de entorno cargadas y verificadas correctamente.")
    return missing


# --- Configuración de Seguridad ---
SECRET_KEY = os.getenv("JWT_SECRET_KEY")
if not SECRET_KEY:
    logger.warning("JWT_SECRET_KEY no está definida en las variables de entorno. Usando clave insegura por defecto para desarrollo.")
    SECRET_KEY = "clave_secreta_insegura_por_defecto_cambiar_urgentemente"

ALGORITHM = "HS256"

ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24 * 7))

RESET_CODE_EXPIRE_MINUTES = 60

SMTP_HOST = os.getenv("SMTP_HOST")
SMTP_PORT = int(os.getenv("SMTP_PORT", 587))
SMTP_USER = os.getenv("SMTP_USER")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verifica una contraseña plana contra un hash almacenado."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Genera el hash de una contraseña plana usando bcrypt."""
    return pwd_context.hash(password)


# --- Utilidades para Tokens JWT ---
def create_access_token(data: Dict) -> str:
    """
    Genera un token de acceso JWT con los datos proporcionados y una marca de tiempo de expiración.

    Args:
        data: Diccionario (payload) a incluir en el token (ej., {'sub': user_id, 'role': 'ADMIN'}).

    Returns:
        String del JWT codificado.
    """
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def create_token_for_user(user: User) -> str:
    return create_access_token({"sub": str(user.id), "email": user.email, "role": user.role.value})


def decode_token(token: str) -> Optional[Dict]:
    """
    Decodifica y valida un token JWT (firma y expiración).

    Returns:
        El payload si el token es válido, en caso contrario None.
    """
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.warning(f"Fallo en decodificación de token: {e}")
        return None


# --- Dependencias de Autenticación ---

class AuthContext(BaseModel):
    """Identidad verificada de la petición; se pasa explícitamente a los endpoints."""
    user_id: int
    email: str
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


def get_auth(
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> Optional[AuthContext]:
    """
    Extrae el token 'Bearer' de la cabecera Authorization y lo valida contra la BD.
    Devuelve None (invitado) si falta, es inválido o el usuario ya no está activo.
    """
    if not authorization or not authorization.startswith("Bearer "):
        return None

    payload = decode_token(authorization.split(" ", 1)[1].strip())
    if payload is None or "sub" not in payload:
        return None

    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        logger.warning(f"Token inválido: 'sub' no es numérico ({payload.get('sub')!r})")
        return None

    user = db.query(User).filter(User.id == user_id).first()
    if not user or user.status != UserStatus.ACTIVE:
        logger.warning(f"Token de usuario inexistente o desactivado: {user_id}")
        return None

    # El rol se toma de la BD: un cambio de rol hecho por el admin aplica de inmediato
    return AuthContext(user_id=user.id, email=user.email, role=user.role)


def require_user(auth: Optional[AuthContext] = Depends(get_auth)) -> AuthContext:
    if auth is None:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "No autenticado", headers={"WWW-Authenticate": "Bearer"})
    return auth


def require_admin(auth: Optional[AuthContext] = Depends(get_auth)) -> AuthContext:
    if auth is None or not auth.is_admin:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Unauthorized", headers={"WWW-Authenticate": "Bearer"})
    return auth


# --- Recuperación de Contraseña ---

def generate_reset_code() -> str:
    """Código numérico de 6 dígitos."""
    return str(secrets.randbelow(900000) + 100000)


def reset_code_expiry() -> datetime:
    return datetime.utcnow() + timedelta(minutes=RESET_CODE_EXPIRE_MINUTES)


def smtp_settings(config: Optional[Configuration]) -> Optional[Dict]:
    """
    Credenciales SMTP: primero las de la fila de configuración, luego las del entorno.
    Devuelve None si no hay servidor configurado.
    """
    if config and config.smtp_host and config.smtp_user and config.smtp_pass:
        return {
            "host": config.smtp_host,
            "port": int(config.smtp_port or 587),
            "user": config.smtp_user,
            "password": config.smtp_pass,
            "sender": config.support_email or config.smtp_user,
            "site_name": config.site_name,
        }
    if SMTP_HOST:
        return {
            "host": SMTP_HOST,
            "port": SMTP_PORT,
            "user": SMTP_USER,
            "password": SMTP_PASSWORD,
            "sender": SMTP_USER or "no-reply@hostalacuario.com",
            "site_name": config.site_name if config else "Hostal Acuario",
        }
    return None


def send_reset_code_email(settings: Dict, to_email: str, name: Optional[str], code: str):
    """Envía el código de recuperación. Se ejecuta en segundo plano (BackgroundTasks)."""
    msg = EmailMessage()
    msg.set_content(f"""
    Hola {name or 'Usuario'},

    Has solicitado restablecer tu contraseña en {settings['site_name']}.
    Tu código de recuperación es: {code}

    Este código expira en {RESET_CODE_EXPIRE_MINUTES} minutos.
    Si no fuiste tú, ignora este mensaje.
    """)

    msg['Subject'] = "Recuperación de Contraseña"
    msg['From'] = f"\"{settings['site_name']}\" <{settings['sender']}>"
    msg['To'] = to_email

    try:
        with smtplib.SMTP(settings["host"], settings["port"], timeout=10) as server:
            server.ehlo()
            if server.has_extn("starttls"):
                server.starttls()
                server.ehlo()
            if settings.get("user") and settings.get("password"):
                server.login(settings["user"], settings["password"])
            server.send_message(msg)
            logger.info(f"Correo de recuperación enviado a {to_email}")
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"Error enviando correo de recuperación a {to_email}: {e}", exc_info=True)
