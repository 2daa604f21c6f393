"""Module de calcul HT/TVA/TTC."""

from devispro.taxes.calcul import (
    BornesTVA,
    TotauxDocument,
    TotauxLigne,
    aggregate,
    effective_rate,
    is_uniform_rate,
    line_total,
    total_ligne_affichage,
    valider_ligne,
)

__all__ = [
    "BornesTVA",
    "TotauxDocument",
    "TotauxLigne",
    "aggregate",
    "effective_rate",
    "is_uniform_rate",
    "line_total",
    "total_ligne_affichage",
    "valider_ligne",
]
