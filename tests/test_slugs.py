"""Pruebas de la generación de slugs."""

import re
from itertools import islice

from hotel_service.slugs import candidates, import_slug, slugify


def test_slugify_strips_accents_and_symbols():
    """El slug queda en minúsculas, sin tildes ni símbolos."""
    assert slugify("Suite Ñandú!") == "suite-nandu"
    assert slugify("  Habitación   Doble -- Vista al Mar ") == "habitacion-doble-vista-al-mar"


def test_slugify_short_titles_get_suffix():
    """Los slugs de menos de tres caracteres reciben sufijo."""
    assert slugify("A1") == "a1-habitacion"
    assert slugify("!!!") == "habitacion"
    assert slugify("") == "habitacion"


def test_candidates_are_numbered_after_base():
    """Los candidatos siguen base, base-1, base-2..."""
    assert list(islice(candidates("suite"), 4)) == ["suite", "suite-1", "suite-2", "suite-3"]


def test_import_slug_has_time_and_random_suffix():
    """El slug de importación lleva marca de tiempo y aleatorio."""
    slug = import_slug("Cabaña Azul")
    assert re.fullmatch(r"cabana-azul-\d{13}-\d{1,3}", slug), slug
