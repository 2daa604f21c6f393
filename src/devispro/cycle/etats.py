"""Graphe des statuts des devis et des factures.

Les transitions legales sont declarees comme donnees (tables de
`Transition`), chacune avec sa precondition optionnelle. `transition()` est
le seul chemin qui modifie `Quote.status` ou `Invoice.payment_status`.

Devis:    draft -> sent -> signed -> deposit_paid -> completed
          signed -> completed (sans acompte prevu)
          canceled depuis tout statut non terminal
Facture:  draft -> sent -> {partial | paid | overdue}
          draft -> partial (acompte reporte depuis le devis)
          overdue -> {partial | paid}, partial -> paid
          canceled depuis tout statut sauf canceled

`overdue` est aussi derive a la lecture (`statut_effectif`), sans ecriture.
"""

from __future__ import annotations

import datetime
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from devispro.erreurs import IllegalTransition
from devispro.models.documents import (
    DepositStatus,
    Invoice,
    InvoiceStatus,
    Quote,
    QuoteStatus,
)
from devispro.models.montants import ZERO
from devispro.taxes.calcul import aggregate

logger = logging.getLogger(__name__)

Document = Union[Quote, Invoice]
Precondition = Callable[[Document, datetime.datetime], Optional[str]]


@dataclass(frozen=True)
class Transition:
    """Arete du graphe: source -> cible, precondition et champ horodate."""

    source: Enum
    cible: Enum
    precondition: Optional[Precondition] = None
    horodatage: Optional[str] = None


# ---------------------------------------------------------------------------
# Preconditions (retournent un message d'erreur, ou None si satisfaite)
# ---------------------------------------------------------------------------


def _lignes_presentes(doc: Document, maintenant: datetime.datetime) -> Optional[str]:
    if not doc.items:
        return "le document ne contient aucune ligne"
    return None


def _signature_presente(doc: Quote, maintenant: datetime.datetime) -> Optional[str]:
    if not doc.signature_ref:
        return "reference de signature manquante"
    return None


def _acompte_encaisse(doc: Quote, maintenant: datetime.datetime) -> Optional[str]:
    if doc.deposit_amount is None or doc.deposit_amount <= ZERO:
        return "aucun montant d'acompte"
    if doc.deposit_status != DepositStatus.PAID:
        return "acompte non encaisse"
    if doc.deposit_amount > aggregate(doc.items).total_ttc:
        return "acompte superieur au total TTC"
    return None


def _sans_acompte(doc: Quote, maintenant: datetime.datetime) -> Optional[str]:
    if doc.deposit_amount is not None and doc.deposit_amount > ZERO:
        return "un acompte est prevu: le devis doit passer par deposit_paid"
    return None


def _acompte_reporte(doc: Invoice, maintenant: datetime.datetime) -> Optional[str]:
    if doc.paid_amount <= ZERO:
        return "aucun acompte reporte"
    return None


def _paiement_partiel(doc: Invoice, maintenant: datetime.datetime) -> Optional[str]:
    if not ZERO < doc.paid_amount < doc.total_ttc:
        return "le montant regle doit etre strictement entre 0 et le total TTC"
    return None


def _paiement_complet(doc: Invoice, maintenant: datetime.datetime) -> Optional[str]:
    if doc.paid_amount < doc.total_ttc:
        return "le montant regle n'atteint pas le total TTC"
    return None


def _echeance_depassee(doc: Invoice, maintenant: datetime.datetime) -> Optional[str]:
    if maintenant.date() <= doc.due_date:
        return f"echeance du {doc.due_date} non depassee"
    if doc.paid_amount >= doc.total_ttc:
        return "facture deja reglee"
    return None


# ---------------------------------------------------------------------------
# Tables de transitions
# ---------------------------------------------------------------------------

TRANSITIONS_DEVIS: tuple[Transition, ...] = (
    Transition(QuoteStatus.DRAFT, QuoteStatus.SENT, _lignes_presentes, "sent_at"),
    Transition(QuoteStatus.SENT, QuoteStatus.SIGNED, _signature_presente, "signed_at"),
    Transition(QuoteStatus.SIGNED, QuoteStatus.DEPOSIT_PAID, _acompte_encaisse),
    Transition(QuoteStatus.SIGNED, QuoteStatus.COMPLETED, _sans_acompte, "completed_at"),
    Transition(QuoteStatus.DEPOSIT_PAID, QuoteStatus.COMPLETED, None, "completed_at"),
    Transition(QuoteStatus.DRAFT, QuoteStatus.CANCELED, None, "canceled_at"),
    Transition(QuoteStatus.SENT, QuoteStatus.CANCELED, None, "canceled_at"),
    Transition(QuoteStatus.SIGNED, QuoteStatus.CANCELED, None, "canceled_at"),
    Transition(QuoteStatus.DEPOSIT_PAID, QuoteStatus.CANCELED, None, "canceled_at"),
)

TRANSITIONS_FACTURE: tuple[Transition, ...] = (
    Transition(InvoiceStatus.DRAFT, InvoiceStatus.SENT, _lignes_presentes, "sent_at"),
    Transition(InvoiceStatus.DRAFT, InvoiceStatus.PARTIAL, _acompte_reporte),
    Transition(InvoiceStatus.SENT, InvoiceStatus.PARTIAL, _paiement_partiel),
    Transition(InvoiceStatus.SENT, InvoiceStatus.PAID, _paiement_complet, "paid_at"),
    Transition(InvoiceStatus.SENT, InvoiceStatus.OVERDUE, _echeance_depassee),
    Transition(InvoiceStatus.OVERDUE, InvoiceStatus.PARTIAL, _paiement_partiel),
    Transition(InvoiceStatus.OVERDUE, InvoiceStatus.PAID, _paiement_complet, "paid_at"),
    Transition(InvoiceStatus.PARTIAL, InvoiceStatus.PAID, _paiement_complet, "paid_at"),
    Transition(InvoiceStatus.DRAFT, InvoiceStatus.CANCELED, None, "canceled_at"),
    Transition(InvoiceStatus.SENT, InvoiceStatus.CANCELED, None, "canceled_at"),
    Transition(InvoiceStatus.PARTIAL, InvoiceStatus.CANCELED, None, "canceled_at"),
    Transition(InvoiceStatus.OVERDUE, InvoiceStatus.CANCELED, None, "canceled_at"),
    Transition(InvoiceStatus.PAID, InvoiceStatus.CANCELED, None, "canceled_at"),
)

STATUTS_TERMINAUX_DEVIS = frozenset({QuoteStatus.COMPLETED, QuoteStatus.CANCELED})
STATUTS_TERMINAUX_FACTURE = frozenset({InvoiceStatus.CANCELED})


def _table(doc: Document) -> tuple[tuple[Transition, ...], str]:
    """Retourne la table de transitions et le nom du champ de statut."""
    if isinstance(doc, Quote):
        return TRANSITIONS_DEVIS, "status"
    if isinstance(doc, Invoice):
        return TRANSITIONS_FACTURE, "payment_status"
    raise TypeError(f"Document non pris en charge: {type(doc).__name__}")


def _libelle(doc: Document) -> str:
    genre = "Devis" if isinstance(doc, Quote) else "Facture"
    return f"{genre} {doc.number or doc.id}"


# ---------------------------------------------------------------------------
# API
# ---------------------------------------------------------------------------


def transition(
    doc: Document,
    cible: Enum | str,
    maintenant: datetime.datetime | None = None,
) -> Document:
    """Applique une transition de statut et retourne le document modifie.

    Args:
        doc: Devis ou facture dans son etat courant.
        cible: Statut vise (enum ou sa valeur texte).
        maintenant: Horodatage de la transition (defaut: maintenant).

    Returns:
        Copie du document avec le nouveau statut et l'horodatage associe.

    Raises:
        IllegalTransition: arete absente du graphe ou precondition non remplie.
    """
    if maintenant is None:
        maintenant = datetime.datetime.now()

    table, champ = _table(doc)
    source = getattr(doc, champ)
    try:
        cible = type(source)(cible)
    except ValueError:
        raise IllegalTransition(source.value, str(cible), "statut inconnu") from None

    regle = next((t for t in table if t.source == source and t.cible == cible), None)
    if regle is None:
        raise IllegalTransition(source.value, cible.value)

    if regle.precondition is not None:
        raison = regle.precondition(doc, maintenant)
        if raison:
            raise IllegalTransition(source.value, cible.value, raison)

    modifications: dict = {champ: cible}
    if regle.horodatage:
        modifications[regle.horodatage] = maintenant

    logger.info("%s: %s -> %s", _libelle(doc), source.value, cible.value)
    return doc.model_copy(update=modifications)


def transitions_possibles(doc: Document) -> list[Enum]:
    """Statuts atteignables depuis le statut courant (preconditions non verifiees)."""
    table, champ = _table(doc)
    courant = getattr(doc, champ)
    return [t.cible for t in table if t.source == courant]


def est_terminal(doc: Document) -> bool:
    if isinstance(doc, Quote):
        return doc.status in STATUTS_TERMINAUX_DEVIS
    return doc.payment_status in STATUTS_TERMINAUX_FACTURE


def statut_effectif(
    facture: Invoice,
    aujourd_hui: datetime.date | None = None,
) -> InvoiceStatus:
    """Statut d'une facture tel qu'affiche, avec `overdue` derive a la lecture.

    Une facture `sent` non reglee dont l'echeance est depassee est vue comme
    `overdue`. Rien n'est ecrit.
    """
    if aujourd_hui is None:
        aujourd_hui = datetime.date.today()
    if (
        facture.payment_status == InvoiceStatus.SENT
        and aujourd_hui > facture.due_date
        and facture.paid_amount < facture.total_ttc
    ):
        return InvoiceStatus.OVERDUE
    return facture.payment_status


def envoyer(doc: Document, maintenant: datetime.datetime | None = None) -> Document:
    """Enregistre l'envoi d'un document au client.

    Un brouillon passe a `sent`. Une facture creee en `partial` (acompte
    reporte) garde son statut et recoit seulement sa date d'envoi.
    """
    if maintenant is None:
        maintenant = datetime.datetime.now()
    if (
        isinstance(doc, Invoice)
        and doc.payment_status == InvoiceStatus.PARTIAL
        and doc.sent_at is None
    ):
        logger.info("%s: envoi enregistre (statut partial conserve)", _libelle(doc))
        return doc.model_copy(update={"sent_at": maintenant})
    sent = QuoteStatus.SENT if isinstance(doc, Quote) else InvoiceStatus.SENT
    return transition(doc, sent, maintenant)
