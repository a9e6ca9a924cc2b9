"""
Montants monétaires en virgule fixe (2 décimales).

Règle unique de la plateforme: arrondi « half away from zero » à 2 décimales
(ROUND_HALF_UP sur Decimal). Les floats ne sont acceptés qu'en entrée et passent
par str() pour ne jamais arrondir une représentation binaire approchée.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from functools import total_ordering
from typing import Any, Optional

CENT = Decimal("0.01")
MINOR_PER_MAJOR = 100


class InvalidAmount(ValueError):
    pass


def to_decimal(value: Any) -> Decimal:
    """
    Convertit une valeur brute (Decimal, int, str, float, Money) en Decimal fini.
    - bool et None refusés
    - NaN / Infinity refusés
    """
    if isinstance(value, Money):
        return value.amount
    if value is None or isinstance(value, bool):
        raise InvalidAmount(f"Montant invalide: {value!r}")
    try:
        if isinstance(value, Decimal):
            dec = value
        elif isinstance(value, float):
            dec = Decimal(str(value))
        elif isinstance(value, (int, str)):
            dec = Decimal(str(value).strip())
        else:
            raise InvalidAmount(f"Type de montant non supporté: {type(value).__name__}")
    except InvalidOperation:
        raise InvalidAmount(f"Montant invalide: {value!r}")
    if not dec.is_finite():
        raise InvalidAmount(f"Montant non fini: {value!r}")
    return dec


def round_amount(value: Any) -> Decimal:
    dec = to_decimal(value)
    try:
        return dec.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        # au-delà de la précision du contexte (28 chiffres)
        raise InvalidAmount(f"Montant hors limites: {value!r}")


def format_amount(value: Any) -> str:
    """Forme canonique de stockage: '1234.50' (pas de séparateur de milliers)."""
    return f"{round_amount(value):.2f}"


def to_minor_units(value: Any) -> int:
    """Montant en unités mineures (centimes/grosze) pour les line items Stripe."""
    return int(round_amount(value) * MINOR_PER_MAJOR)


def to_major_units(value: Any) -> Optional[Decimal]:
    """
    Inverse de to_minor_units pour les montants renvoyés par Stripe.
    Retourne None si la valeur est absente ou non numérique.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        minor = to_decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        return round_amount(minor / MINOR_PER_MAJOR)
    except (InvalidAmount, InvalidOperation):
        return None


@total_ordering
class Money:
    """
    Montant immuable arrondi dès la construction.
    Additions entre Money, multiplication par un entier ou un Decimal (résultat
    ré-arrondi). Toute opération avec un float lève TypeError.
    """
    __slots__ = ("_amount",)

    def __init__(self, value: Any = 0):
        object.__setattr__(self, "_amount", round_amount(value))

    def __setattr__(self, name, value):
        raise AttributeError("Money est immuable")

    @property
    def amount(self) -> Decimal:
        return self._amount

    @property
    def minor_units(self) -> int:
        return int(self._amount * MINOR_PER_MAJOR)

    def __add__(self, other):
        if isinstance(other, Money):
            return Money(self._amount + other._amount)
        if isinstance(other, float):
            raise TypeError("Money + float interdit")
        return NotImplemented

    def __radd__(self, other):
        # sum() démarre à 0
        if isinstance(other, int) and not isinstance(other, bool) and other == 0:
            return self
        return self.__add__(other)

    def __mul__(self, other):
        if isinstance(other, float):
            raise TypeError("Money * float interdit")
        if isinstance(other, bool):
            return NotImplemented
        if isinstance(other, (int, Decimal)):
            return Money(self._amount * other)
        return NotImplemented

    __rmul__ = __mul__

    def __eq__(self, other):
        if isinstance(other, Money):
            return self._amount == other._amount
        if isinstance(other, (int, Decimal)) and not isinstance(other, bool):
            return self._amount == other
        return NotImplemented

    def __lt__(self, other):
        if isinstance(other, Money):
            return self._amount < other._amount
        if isinstance(other, (int, Decimal)) and not isinstance(other, bool):
            return self._amount < other
        return NotImplemented

    def __hash__(self):
        return hash(self._amount)

    def __bool__(self):
        return bool(self._amount)

    def __str__(self):
        return f"{self._amount:.2f}"

    def __repr__(self):
        return f"Money('{self}')"


ZERO = Money(0)
