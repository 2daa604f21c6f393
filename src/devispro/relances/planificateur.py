"""Planification des relances de devis et de factures.

Les relances tombent a des multiples de l'intervalle depuis l'envoi:
la relance de rang n est due a partir de `intervalle * n` jours apres
`sent_at`. Le calendrier ne depend donc que de la date d'envoi et du
nombre de relances deja faites, et ne derive pas si une relance part en
retard.

Le planificateur ne modifie rien. L'appelant envoie le courriel puis
enregistre la relance (`enregistrer_relance`).
"""

from __future__ import annotations

import datetime
import logging
from typing import Literal, Optional, Protocol, Union

from pydantic import BaseModel, Field

from devispro.config import ConfigMoteur
from devispro.cycle.etats import statut_effectif
from devispro.erreurs import DocumentNotSent, ReminderCapReached
from devispro.models.documents import (
    Invoice,
    InvoiceStatus,
    Quote,
    QuoteStatus,
    ReminderRecord,
)

logger = logging.getLogger(__name__)

UN_JOUR = datetime.timedelta(days=1)

INTERVALLE_DEVIS = 7
INTERVALLE_FACTURE = 10

STATUTS_A_RELANCER_FACTURE = frozenset(
    {InvoiceStatus.SENT, InvoiceStatus.PARTIAL, InvoiceStatus.OVERDUE}
)


class DocumentRelancable(Protocol):
    """Tout document exposant sa date d'envoi et son compteur de relances."""

    sent_at: Optional[datetime.datetime]
    reminder_count: int
    max_reminders: int


class EtatRelance(BaseModel):
    """Resultat de l'evaluation des relances d'un document."""

    days_since_sent: int
    reminder_count: int
    next_reminder_due: bool
    next_reminder_in: Optional[int]
    can_remind: bool


class ParametresRelance(BaseModel):
    """Reglages de relance pour un type de document."""

    enabled: bool = True
    interval_days: int = Field(default=INTERVALLE_DEVIS, gt=0)
    max_reminders: int = Field(default=3, ge=0)
    custom_message: Optional[str] = None

    @classmethod
    def depuis_config(
        cls, config: ConfigMoteur, genre: Literal["devis", "facture"]
    ) -> "ParametresRelance":
        intervalle = (
            config.intervalle_relance_devis
            if genre == "devis"
            else config.intervalle_relance_facture
        )
        return cls(
            enabled=config.relances_actives,
            interval_days=intervalle,
            max_reminders=config.max_relances,
            custom_message=config.message_relance,
        )


class RelanceDocument(BaseModel):
    """Ligne de l'apercu des relances."""

    reference: str
    genre: Literal["devis", "facture"]
    etat: EtatRelance


class ApercuRelances(BaseModel):
    """Apercu des relances pour un lot de documents, avec statistiques."""

    documents: list[RelanceDocument] = []
    total_pending: int = 0
    ready_for_reminder: int = 0
    total_reminders: int = 0


def _intervalle_defaut(doc: object) -> int:
    return INTERVALLE_FACTURE if isinstance(doc, Invoice) else INTERVALLE_DEVIS


def evaluate(
    doc: DocumentRelancable,
    maintenant: datetime.datetime | None = None,
    intervalle_jours: int | None = None,
    max_relances: int | None = None,
) -> EtatRelance:
    """Determine si une relance est due pour un document.

    Args:
        doc: Document envoye (devis ou facture).
        maintenant: Instant de reference (defaut: maintenant).
        intervalle_jours: Intervalle entre relances (defaut: 7 pour un devis,
            10 pour une facture).
        max_relances: Plafond de relances (defaut: celui du document).

    Raises:
        DocumentNotSent: le document n'a jamais ete envoye.
    """
    if maintenant is None:
        maintenant = datetime.datetime.now()
    if intervalle_jours is None:
        intervalle_jours = _intervalle_defaut(doc)
    if max_relances is None:
        max_relances = doc.max_reminders

    if doc.sent_at is None:
        raise DocumentNotSent("Le document n'a jamais ete envoye")

    jours = (maintenant - doc.sent_at) // UN_JOUR
    nombre = doc.reminder_count
    peut_relancer = nombre < max_relances
    seuil = intervalle_jours * (nombre + 1)
    due = peut_relancer and jours >= seuil

    if due:
        dans: Optional[int] = 0
    elif peut_relancer:
        dans = seuil - jours
    else:
        dans = None

    return EtatRelance(
        days_since_sent=jours,
        reminder_count=nombre,
        next_reminder_due=due,
        next_reminder_in=dans,
        can_remind=peut_relancer,
    )


def _en_attente(doc: Union[Quote, Invoice], aujourd_hui: datetime.date) -> bool:
    """Vrai si le document attend une reponse du client."""
    if isinstance(doc, Quote):
        return doc.status == QuoteStatus.SENT
    return statut_effectif(doc, aujourd_hui) in STATUTS_A_RELANCER_FACTURE


def apercu_relances(
    documents: list[Union[Quote, Invoice]],
    parametres: ParametresRelance,
    maintenant: datetime.datetime | None = None,
) -> ApercuRelances:
    """Evalue les relances d'un lot de documents (tableau de bord, tache batch).

    Les documents jamais envoyes ou qui n'attendent plus de reponse sont
    ignores. Si les relances sont desactivees, aucune n'est due.
    """
    if maintenant is None:
        maintenant = datetime.datetime.now()

    apercu = ApercuRelances()
    for doc in documents:
        apercu.total_reminders += doc.reminder_count
        if not _en_attente(doc, maintenant.date()):
            continue
        try:
            etat = evaluate(doc, maintenant, parametres.interval_days, parametres.max_reminders)
        except DocumentNotSent:
            logger.debug("Document %s jamais envoye, ignore", doc.number or doc.id)
            continue

        if not parametres.enabled:
            etat = etat.model_copy(update={"next_reminder_due": False})

        apercu.documents.append(
            RelanceDocument(
                reference=doc.number or doc.id,
                genre="devis" if isinstance(doc, Quote) else "facture",
                etat=etat,
            )
        )
        apercu.total_pending += 1
        if etat.next_reminder_due:
            apercu.ready_for_reminder += 1

    return apercu


def enregistrer_relance(
    doc: Union[Quote, Invoice],
    maintenant: datetime.datetime | None = None,
    max_relances: int | None = None,
) -> Union[Quote, Invoice]:
    """Enregistre une relance envoyee: compteur + 1 et trace d'audit.

    A appeler par l'appelant apres un envoi reussi.

    Raises:
        DocumentNotSent: le document n'a jamais ete envoye.
        ReminderCapReached: plafond de relances atteint.
    """
    if maintenant is None:
        maintenant = datetime.datetime.now()
    plafond = doc.max_reminders if max_relances is None else min(max_relances, doc.max_reminders)

    if doc.sent_at is None:
        raise DocumentNotSent(f"{doc.number or doc.id}: document jamais envoye")
    if doc.reminder_count >= plafond:
        raise ReminderCapReached(
            f"{doc.number or doc.id}: {doc.reminder_count} relance(s), plafond {plafond}"
        )

    rang = doc.reminder_count + 1
    logger.info("Relance %d enregistree pour %s", rang, doc.number or doc.id)
    return doc.model_copy(
        update={
            "reminder_count": rang,
            "reminders": (*doc.reminders, ReminderRecord(sent_at=maintenant, rank=rang)),
        }
    )
