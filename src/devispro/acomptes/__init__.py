"""Module de suivi des acomptes."""

from devispro.acomptes.ledger import (
    calculer_acompte,
    demander_acompte,
    deposit_paid,
    describe_deposit,
    enregistrer_acompte,
)

__all__ = [
    "calculer_acompte",
    "demander_acompte",
    "deposit_paid",
    "describe_deposit",
    "enregistrer_acompte",
]
