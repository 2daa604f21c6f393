"""Montants en Decimal et arrondi au cent.

Toute l'arithmetique utilise Decimal. L'arrondi ROUND_HALF_UP a 2 decimales
n'a lieu qu'au moment de produire un total persiste, via `arrondir()`.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated, Any

from pydantic import BeforeValidator

QUANTIZE_CENT = Decimal("0.01")
ZERO = Decimal("0")


def _rejeter_float(v: Any) -> Any:
    """Refuse les float pour forcer l'utilisation de Decimal, int ou str."""
    if isinstance(v, float):
        raise ValueError(
            "Les montants doivent etre Decimal, int ou str, jamais float. "
            "Utilisez Decimal('100.00') ou '100.00'."
        )
    return v


def _coerce_decimal(v: Any) -> Any:
    """Convertit un float en Decimal via sa representation textuelle."""
    if isinstance(v, float):
        return Decimal(str(v))
    return v


# Montant persiste: jamais de float.
Montant = Annotated[Decimal, BeforeValidator(_rejeter_float)]

# Quantites et taux saisis: un float est tolere et converti via str().
Nombre = Annotated[Decimal, BeforeValidator(_coerce_decimal)]


def arrondir(montant: Decimal) -> Decimal:
    """Arrondit au cent (ROUND_HALF_UP)."""
    return montant.quantize(QUANTIZE_CENT, rounding=ROUND_HALF_UP)


def formater_euros(montant: Decimal) -> str:
    """Formate un montant a la francaise: 1 234,50 €."""
    texte = f"{arrondir(montant):,.2f}"
    return texte.replace(",", " ").replace(".", ",") + " €"
