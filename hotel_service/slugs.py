"""Generación de slugs (identificadores legibles en URL) para habitaciones."""

import random
import re
import time
import unicodedata
from typing import Iterator

MIN_SLUG_LENGTH = 3
SHORT_SLUG_SUFFIX = "habitacion"

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(title: str) -> str:
    """
    Convierte un título en slug: minúsculas, sin tildes, todo lo que no sea
    alfanumérico pasa a guion y se recortan los guiones de los extremos.

    >>> slugify("Suite Ñandú!")
    'suite-nandu'
    """
    normalized = unicodedata.normalize("NFD", (title or "").lower())
    without_marks = "".join(ch for ch in normalized if not unicodedata.combining(ch))
    slug = _NON_ALNUM.sub("-", without_marks).strip("-")

    if len(slug) < MIN_SLUG_LENGTH:
        slug = f"{slug}-{SHORT_SLUG_SUFFIX}" if slug else SHORT_SLUG_SUFFIX
    return slug


def candidates(base: str) -> Iterator[str]:
    """Produce `base`, `base-1`, `base-2`, ... para reintentar ante colisiones."""
    yield base
    n = 1
    while True:
        yield f"{base}-{n}"
        n += 1


def import_slug(title: str) -> str:
    """Slug para la importación masiva: sufijo de tiempo + aleatorio en vez de sondear la tabla."""
    return f"{slugify(title)}-{int(time.time() * 1000)}-{random.randint(0, 999)}"
