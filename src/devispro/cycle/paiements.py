"""Enregistrement des paiements recus sur une facture."""

from __future__ import annotations

import datetime
import logging
from decimal import Decimal

from devispro.cycle.etats import transition
from devispro.erreurs import ErreurMoteur, IllegalTransition, OverPayment
from devispro.models.documents import Invoice, InvoiceStatus
from devispro.models.montants import ZERO, arrondir

logger = logging.getLogger(__name__)

STATUTS_ENCAISSABLES = frozenset(
    {InvoiceStatus.SENT, InvoiceStatus.PARTIAL, InvoiceStatus.OVERDUE}
)


def enregistrer_paiement(
    facture: Invoice,
    montant: Decimal,
    maintenant: datetime.datetime | None = None,
) -> Invoice:
    """Ajoute un paiement et fait evoluer le statut (partial ou paid).

    Raises:
        ErreurMoteur: montant non positif.
        IllegalTransition: facture en brouillon, payee ou annulee.
        OverPayment: le total regle depasserait le total TTC.
    """
    if maintenant is None:
        maintenant = datetime.datetime.now()

    montant = arrondir(Decimal(montant))
    if montant <= ZERO:
        raise ErreurMoteur(f"Montant de paiement non positif: {montant}")

    if facture.payment_status not in STATUTS_ENCAISSABLES:
        raise IllegalTransition(
            facture.payment_status.value,
            InvoiceStatus.PAID.value,
            "paiement impossible dans ce statut",
        )

    nouveau_total = facture.paid_amount + montant
    if nouveau_total > facture.total_ttc:
        raise OverPayment(
            f"Paiement de {montant} refuse: {nouveau_total} regle pour "
            f"un total TTC de {facture.total_ttc}"
        )

    facture = facture.model_copy(update={"paid_amount": nouveau_total})
    logger.info(
        "Facture %s: paiement de %s (%s / %s)",
        facture.number or facture.id,
        montant,
        nouveau_total,
        facture.total_ttc,
    )

    if nouveau_total == facture.total_ttc:
        return transition(facture, InvoiceStatus.PAID, maintenant)
    if facture.payment_status == InvoiceStatus.PARTIAL:
        return facture
    return transition(facture, InvoiceStatus.PARTIAL, maintenant)
