"""Conversion d'un devis signe en brouillon de facture.

La conversion n'a lieu qu'une fois par devis. `convert()` ne persiste rien:
elle verifie aupres du depot de factures qu'aucune facture ne reference
deja le devis, puis retourne le brouillon. L'appelant l'enregistre (le
registre refuse aussi un doublon au moment de l'ecriture).
"""

from __future__ import annotations

import datetime
import logging
from typing import Protocol

from devispro.acomptes.ledger import deposit_paid, describe_deposit
from devispro.config import CONFIG_DEFAUT
from devispro.cycle.etats import transition
from devispro.erreurs import DuplicateConversion, ErreurMoteur, QuoteNotConvertible
from devispro.models.documents import Client, Invoice, InvoiceStatus, Quote, QuoteStatus
from devispro.models.montants import ZERO
from devispro.taxes.calcul import BORNES_DEFAUT, BornesTVA, aggregate, effective_rate

logger = logging.getLogger(__name__)

STATUTS_CONVERTIBLES = frozenset(
    {QuoteStatus.SIGNED, QuoteStatus.DEPOSIT_PAID, QuoteStatus.COMPLETED}
)


class DepotFactures(Protocol):
    """Ce que la conversion attend du stockage des factures."""

    def existe_pour_devis(self, quote_id: str) -> bool: ...


def convert(
    quote: Quote,
    client: Client,
    factures: DepotFactures,
    maintenant: datetime.datetime | None = None,
    delai_echeance_jours: int = CONFIG_DEFAUT.delai_echeance_jours,
    numero: str | None = None,
    bornes: BornesTVA = BORNES_DEFAUT,
) -> Invoice:
    """Produit le brouillon de facture d'un devis signe.

    Args:
        quote: Devis signe, avec acompte paye ou termine.
        client: Client du devis (copie figee sur la facture).
        factures: Depot interroge pour la garde d'unicite.
        maintenant: Date d'emission (defaut: maintenant).
        delai_echeance_jours: Echeance = emission + ce nombre de jours.
        numero: Numero de facture deja attribue, le cas echeant.
        bornes: Bornes de TVA appliquees aux lignes.

    Returns:
        Facture `draft`, ou `partial` si un acompte a ete encaisse.

    Raises:
        QuoteNotConvertible: devis ni signe, ni deposit_paid, ni completed,
            ou acompte encaisse superieur au total TTC.
        DuplicateConversion: une facture reference deja ce devis.
        InvalidLineItem: ligne invalide sur le devis.
    """
    if maintenant is None:
        maintenant = datetime.datetime.now()

    libelle = quote.number or quote.id
    if quote.status not in STATUTS_CONVERTIBLES:
        raise QuoteNotConvertible(
            f"Le devis {libelle} doit etre signe avant d'etre facture "
            f"(statut: {quote.status.value})"
        )
    if factures.existe_pour_devis(quote.id):
        raise DuplicateConversion(f"Le devis {libelle} est deja facture")
    if client.id != quote.client_ref:
        raise ErreurMoteur(f"Le client {client.id} ne correspond pas au devis {libelle}")

    totaux = aggregate(quote.items, bornes)
    taux = effective_rate(quote.items, bornes)
    acompte = deposit_paid(quote)
    if acompte > totaux.total_ttc:
        raise QuoteNotConvertible(
            f"Acompte encaisse {acompte} superieur au total TTC "
            f"{totaux.total_ttc} du devis {libelle}"
        )

    notes = f"Facture generee depuis le devis {libelle}"
    note_acompte = describe_deposit(quote)
    if note_acompte:
        notes = f"{notes}\n{note_acompte}"

    date_emission = maintenant.date()
    facture = Invoice(
        number=numero,
        quote_ref=quote.id,
        client_ref=client.id,
        client_name=client.name,
        client_email=client.email or "",
        client_address=client.formatted_address(),
        client_siret=client.siret or "",
        items=tuple(item.model_copy() for item in quote.items),
        issue_date=date_emission,
        due_date=date_emission + datetime.timedelta(days=delai_echeance_jours),
        subtotal_ht=totaux.subtotal_ht,
        total_vat=totaux.total_vat,
        total_ttc=totaux.total_ttc,
        tax_rate=taux,
        paid_amount=acompte,
        payment_terms=f"Paiement a {delai_echeance_jours} jours",
        notes=notes,
        max_reminders=quote.max_reminders,
    )

    if acompte > ZERO:
        facture = transition(facture, InvoiceStatus.PARTIAL, maintenant)

    logger.info(
        "Devis %s converti: total TTC %s, deja regle %s",
        libelle,
        facture.total_ttc,
        facture.paid_amount,
    )
    return facture
