"""Frontiere du moteur: les erreurs y deviennent des valeurs.

Chaque point d'entree retourne un dictionnaire etiquete:
    {"status": "ok", ...}
    {"status": "erreur", "code": "<code>", "message": "..."}

Aucune ErreurMoteur ne sort de ce module. Les invariants des modeles
(acompte <= TTC par exemple) sont verifies par le moteur avant la
construction d'un document; une ValidationError pydantic qui passerait
signale un document stocke corrompu, pas un refus metier.

L'appelant persiste les documents retournes et declenche les envois
(courriel, PDF).
"""

from __future__ import annotations

import datetime
import logging
from collections.abc import Callable, Iterable
from enum import Enum
from typing import Any, Union

from devispro.config import CONFIG_DEFAUT, ConfigMoteur
from devispro.conversion import DepotFactures, convert
from devispro.cycle.etats import transition
from devispro.erreurs import ErreurMoteur
from devispro.models.documents import Client, Invoice, LineItem, Quote
from devispro.relances.planificateur import ParametresRelance, evaluate
from devispro.taxes.calcul import BornesTVA, aggregate, effective_rate, is_uniform_rate

logger = logging.getLogger(__name__)

Document = Union[Quote, Invoice]


def _bornes(config: ConfigMoteur) -> BornesTVA:
    return BornesTVA(minimum=config.taux_tva_min, maximum=config.taux_tva_max)


def _executer(operation: Callable[[], dict[str, Any]]) -> dict[str, Any]:
    """Execute une operation du moteur et convertit ses erreurs en valeurs."""
    try:
        resultat = operation()
    except ErreurMoteur as e:
        logger.info("Operation refusee (%s): %s", e.code, e)
        return e.vers_dict()
    return {"status": "ok", **resultat}


def calculer_totaux(
    items: Iterable[LineItem],
    config: ConfigMoteur = CONFIG_DEFAUT,
) -> dict[str, Any]:
    """Totaux HT/TVA/TTC et taux affiche d'une liste de lignes."""
    items = tuple(items)
    bornes = _bornes(config)

    def _operation() -> dict[str, Any]:
        totaux = aggregate(items, bornes)
        return {
            "subtotal_ht": totaux.subtotal_ht,
            "total_vat": totaux.total_vat,
            "total_ttc": totaux.total_ttc,
            "tax_rate": effective_rate(items, bornes),
            "uniforme": is_uniform_rate(items, bornes),
        }

    return _executer(_operation)


def appliquer_transition(
    doc: Document,
    cible: Enum | str,
    maintenant: datetime.datetime | None = None,
) -> dict[str, Any]:
    """Change le statut d'un devis ou d'une facture."""
    return _executer(lambda: {"document": transition(doc, cible, maintenant)})


def convertir_devis(
    quote: Quote,
    client: Client,
    factures: DepotFactures,
    maintenant: datetime.datetime | None = None,
    config: ConfigMoteur = CONFIG_DEFAUT,
    numero: str | None = None,
) -> dict[str, Any]:
    """Produit le brouillon de facture d'un devis signe."""
    return _executer(
        lambda: {
            "facture": convert(
                quote,
                client,
                factures,
                maintenant=maintenant,
                delai_echeance_jours=config.delai_echeance_jours,
                numero=numero,
                bornes=_bornes(config),
            )
        }
    )


def evaluer_relance(
    doc: Document,
    maintenant: datetime.datetime | None = None,
    parametres: ParametresRelance | None = None,
) -> dict[str, Any]:
    """Etat de relance d'un document envoye.

    Relances desactivees: aucune relance n'est due, le reste de l'etat est
    calcule normalement.
    """
    if parametres is None:
        genre = "devis" if isinstance(doc, Quote) else "facture"
        parametres = ParametresRelance.depuis_config(CONFIG_DEFAUT, genre)

    def _operation() -> dict[str, Any]:
        etat = evaluate(doc, maintenant, parametres.interval_days, parametres.max_reminders)
        if not parametres.enabled:
            etat = etat.model_copy(update={"next_reminder_due": False})
        return {"relance": etat}

    return _executer(_operation)
