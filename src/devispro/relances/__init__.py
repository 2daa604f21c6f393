"""Module de relances: evaluation, apercu par lot et enregistrement."""

from devispro.relances.planificateur import (
    ApercuRelances,
    EtatRelance,
    ParametresRelance,
    RelanceDocument,
    apercu_relances,
    enregistrer_relance,
    evaluate,
)

__all__ = [
    "ApercuRelances",
    "EtatRelance",
    "ParametresRelance",
    "RelanceDocument",
    "apercu_relances",
    "enregistrer_relance",
    "evaluate",
]
