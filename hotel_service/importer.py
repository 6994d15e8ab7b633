"""
Mapeo flexible de filas importadas (CSV convertido a JSON) al esquema de habitaciones.

Cada campo acepta varios encabezados en español o inglés; se toma el primero
que tenga valor. Una fila que no se puede interpretar lanza ImportRowError y
el llamador la cuenta como fallida sin detener el resto del lote.
"""

import math
import re
from typing import Any, Dict, List, Optional, Sequence

from hotel_service.models import ClimateType

TITLE_KEYS = ["title", "Title", "Nombre", "Titulo", "Habitación"]
DESCRIPTION_KEYS = ["description", "Description", "Descripción", "Detalle"]
PRICE_KEYS = ["price", "Precio", "Precio/Noche", "Noche"]
PRICE_HOUR_KEYS = ["priceHour", "Precio/Hora", "Hora"]
HOLDER_KEYS = ["holder", "Holder", "Propietario", "Dueño"]
CLIMATE_KEYS = ["climate", "Clima", "Tipo", "Aire"]
IMAGE_KEYS = ["images", "image", "Imagen", "Foto", "Fotos", "Url"]

DEFAULT_TITLE = "Habitación Importada"
DEFAULT_DESCRIPTION = "Sin descripción"
DEFAULT_HOLDER = "Admin"

_NOT_NUMERIC = re.compile(r"[^0-9.]")
_IMAGE_SEPARATORS = re.compile(r"[,;\n]+")


class ImportRowError(ValueError):
    pass


def get_field(row: Dict[str, Any], keys: Sequence[str]) -> Optional[Any]:
    """Primer valor no vacío entre los encabezados aceptados, o None."""
    for key in keys:
        value = row.get(key)
        if value is not None and value != "":
            return value
    return None


def parse_amount(value: Any, field: str) -> float:
    """Deja solo dígitos y puntos ('$ 120.000' -> 120.000) y convierte a número."""
    if value is None:
        return 0.0
    cleaned = _NOT_NUMERIC.sub("", str(value))
    try:
        amount = float(cleaned)
    except ValueError:
        raise ImportRowError(f"Valor numérico inválido para '{field}': {value!r}")
    if not math.isfinite(amount):
        raise ImportRowError(f"Valor fuera de rango para '{field}': {value!r}")
    return amount


def parse_climate(value: Any) -> ClimateType:
    raw = str(value).upper() if value is not None else ""
    if "AIRE" in raw or "AC" in raw or raw == "A":
        return ClimateType.AIRE
    if "VENTILADOR" in raw or "FAN" in raw or raw == "V":
        return ClimateType.VENTILADOR
    return ClimateType.NONE


def parse_images(value: Any) -> List[str]:
    if isinstance(value, list):
        return [item for item in value if isinstance(item, str) and item]
    if isinstance(value, str):
        return [part.strip() for part in _IMAGE_SEPARATORS.split(value) if part.strip()]
    return []


def map_row(row: Any) -> Dict[str, Any]:
    """Traduce una fila suelta a los atributos de Room (sin slug)."""
    if not isinstance(row, dict):
        raise ImportRowError("La fila no es un objeto.")

    return {
        "title": str(get_field(row, TITLE_KEYS) or DEFAULT_TITLE),
        "description": str(get_field(row, DESCRIPTION_KEYS) or DEFAULT_DESCRIPTION),
        "price": parse_amount(get_field(row, PRICE_KEYS), "price"),
        "price_hour": parse_amount(get_field(row, PRICE_HOUR_KEYS), "priceHour"),
        "holder": str(get_field(row, HOLDER_KEYS) or DEFAULT_HOLDER),
        "climate": parse_climate(get_field(row, CLIMATE_KEYS)),
        "images": parse_images(get_field(row, IMAGE_KEYS)),
        "amenities": [],
    }
