"""
Nettoyage des champs libres fournis par l'acheteur (note, téléphone, adresses, locale).
Tolérant: toute valeur non conforme est ignorée plutôt que refusée.
"""
from typing import Any, Dict, Iterable, Optional

from marketplace.config import DEFAULT_LOCALE, SUPPORTED_LOCALES

MAX_NOTE_LENGTH = 800
MAX_PHONE_LENGTH = 32
MAX_ADDRESS_FIELD_LENGTH = 160

ADDRESS_FIELDS = (
    "fullName",
    "company",
    "line1",
    "line2",
    "postalCode",
    "city",
    "region",
    "country",
    "taxId",
)

def _trimmed(value: Any, max_length: int) -> Optional[str]:
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    if not trimmed:
        return None
    return trimmed[:max_length]

def sanitize_note(value: Any) -> Optional[str]:
    return _trimmed(value, MAX_NOTE_LENGTH)

def sanitize_phone(value: Any) -> Optional[str]:
    return _trimmed(value, MAX_PHONE_LENGTH)

def sanitize_address(value: Any) -> Dict[str, str]:
    """
    Ne conserve que les champs connus (ADDRESS_FIELDS), chaînes non vides,
    tronquées à 160 caractères. Retourne {} si rien d'exploitable.
    """
    if not isinstance(value, dict):
        return {}
    result: Dict[str, str] = {}
    for name in ADDRESS_FIELDS:
        cleaned = _trimmed(value.get(name), MAX_ADDRESS_FIELD_LENGTH)
        if cleaned:
            result[name] = cleaned
    return result

def sanitize_locale(value: Any, fallback: str = DEFAULT_LOCALE, supported: Iterable[str] = None) -> str:
    allowed = set(supported or SUPPORTED_LOCALES)
    if not isinstance(value, str):
        return fallback
    candidate = value.strip().lower()
    return candidate if candidate in allowed else fallback
