# devispro.cycle - Cycle de vie des devis et factures
#
# Modules:
#   etats.py     - Graphe des statuts et fonction transition()
#   paiements.py - Paiements recus sur une facture (partial / paid)
#   edition.py   - Edition des lignes tant que le document est modifiable

from devispro.cycle.etats import (
    TRANSITIONS_DEVIS,
    TRANSITIONS_FACTURE,
    Transition,
    envoyer,
    statut_effectif,
    transition,
    transitions_possibles,
)
from devispro.cycle.paiements import enregistrer_paiement

__all__ = [
    "TRANSITIONS_DEVIS",
    "TRANSITIONS_FACTURE",
    "Transition",
    "enregistrer_paiement",
    "envoyer",
    "statut_effectif",
    "transition",
    "transitions_possibles",
]
