"""Configuración de la conexión a la base de datos usando SQLAlchemy para el Hotel Service."""

import os
import logging
import time
from fastapi import HTTPException
from sqlalchemy import create_engine, exc
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool
from dotenv import load_dotenv

# Configuración del logger
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

# Carga variables de entorno desde el archivo .env
load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL")

if not DATABASE_URL:
    # Sin URL explícita se arma la de MariaDB con las credenciales sueltas
    DB_USER = os.getenv("DB_USER")
    DB_PASS = os.getenv("DB_PASS")
    DB_HOST = os.getenv("DB_HOST")
    DB_NAME = os.getenv("DB_NAME")

    required_db_vars = {"DB_USER", "DB_PASS", "DB_HOST", "DB_NAME"}
    missing_vars = required_db_vars - set(os.environ)
    if missing_vars:
        logger.error(f"Faltan variables de entorno para la base de datos: {', '.join(sorted(missing_vars))}")

    DATABASE_URL = f"mysql+pymysql://{DB_USER}:{DB_PASS}@{DB_HOST}/{DB_NAME}"

MAX_ATTEMPTS = int(os.getenv("DB_CONNECT_ATTEMPTS", 30))
WAIT_TIME = int(os.getenv("DB_CONNECT_WAIT", 10))


def _engine_kwargs(url: str) -> dict:
    """Argumentos del engine según el motor de la URL."""
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        # En memoria: todas las sesiones comparten la misma conexión
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return kwargs
    return {"pool_pre_ping": True}


engine = None
attempts = 0

while attempts < MAX_ATTEMPTS and engine is None:
    try:
        attempts += 1
        logger.info(f"Intentando conectar a la base de datos (Intento {attempts}/{MAX_ATTEMPTS})...")
        engine = create_engine(DATABASE_URL, **_engine_kwargs(DATABASE_URL))

        # Intenta conectar para verificar credenciales Y que la BD exista
        with engine.connect():
            logger.info("Conexión a la base de datos establecida exitosamente.")

    except exc.SQLAlchemyError as e:
        logger.warning(f"Fallo al conectar a la base de datos: {e}")
        engine = None
        if attempts < MAX_ATTEMPTS:
            time.sleep(WAIT_TIME)
        else:
            logger.error("No se pudo conectar a la base de datos después de %d intentos.", MAX_ATTEMPTS)


# Crea una fábrica de sesiones (SessionLocal)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine) if engine else None

# Crea una clase base (Base) para los modelos declarativos
Base = declarative_base()


def get_db():
    """Entrega una sesión por petición; deshace la transacción si algo falla."""
    if SessionLocal is None:
        logger.error("La fábrica de sesiones de base de datos no está inicializada.")
        raise HTTPException(status_code=503, detail="Servicio de base de datos no disponible.")

    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
