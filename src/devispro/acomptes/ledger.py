"""Suivi de l'acompte d'un devis et report sur la facture derivee.

Le montant de l'acompte est fige au moment ou le devis passe en
`deposit_paid`; il n'est jamais recalcule ensuite (les lignes du devis sont
deja verrouillees a ce stade).
"""

from __future__ import annotations

import datetime
import logging
from decimal import Decimal
from typing import Optional

from devispro.cycle.etats import transition
from devispro.erreurs import DepositAlreadyPaid, DocumentLocked, ErreurMoteur
from devispro.models.documents import DepositMethod, DepositStatus, Quote, QuoteStatus
from devispro.models.montants import ZERO, arrondir, formater_euros
from devispro.taxes.calcul import BORNES_DEFAUT, BornesTVA, aggregate

logger = logging.getLogger(__name__)

CENT = Decimal("100")

LIBELLES_METHODE = {
    DepositMethod.VIREMENT: "par virement",
    DepositMethod.CASH: "en especes",
    DepositMethod.CHEQUE: "par cheque",
    DepositMethod.AUTRE: "",
}

STATUTS_ACOMPTE_MODIFIABLE = frozenset(
    {QuoteStatus.DRAFT, QuoteStatus.SENT, QuoteStatus.SIGNED}
)


def deposit_paid(quote: Quote) -> Decimal:
    """Montant d'acompte deja encaisse sur le devis (0 si non paye)."""
    if quote.deposit_status == DepositStatus.PAID and quote.deposit_amount:
        return quote.deposit_amount
    return ZERO


def describe_deposit(quote: Quote) -> Optional[str]:
    """Note de report de l'acompte pour la facture, ou None si rien n'a ete paye.

    Exemple: "Acompte de 300,00 € deja verse le 15/03/2026 par virement".
    """
    montant = deposit_paid(quote)
    if montant <= ZERO:
        return None

    if quote.deposit_paid_at is not None:
        date_texte = quote.deposit_paid_at.strftime("%d/%m/%Y")
    else:
        date_texte = "date inconnue"

    note = f"Acompte de {formater_euros(montant)} deja verse le {date_texte}"
    if quote.deposit_method is not None:
        libelle = LIBELLES_METHODE.get(quote.deposit_method, "")
        if libelle:
            note = f"{note} {libelle}"
    return note


def calculer_acompte(total_ttc: Decimal, pourcentage: Decimal) -> Decimal:
    """Montant d'acompte pour un pourcentage du TTC (borne a 0..100)."""
    pourcentage = max(ZERO, min(CENT, Decimal(pourcentage)))
    return min(arrondir(total_ttc * pourcentage / CENT), total_ttc)


def demander_acompte(
    quote: Quote,
    pourcentage: Decimal | None = None,
    montant: Decimal | None = None,
    bornes: BornesTVA = BORNES_DEFAUT,
) -> Quote:
    """Fixe l'acompte demande sur un devis, en pourcentage ou en montant.

    Raises:
        DepositAlreadyPaid: l'acompte est deja encaisse (montant fige).
        DocumentLocked: devis termine ou annule.
        ErreurMoteur: parametres absents, ou montant nul ou superieur au TTC.
    """
    if quote.deposit_status == DepositStatus.PAID:
        raise DepositAlreadyPaid(f"Devis {quote.number or quote.id}: acompte deja encaisse")
    if quote.status not in STATUTS_ACOMPTE_MODIFIABLE:
        raise DocumentLocked(
            f"Devis {quote.number or quote.id}: acompte non modifiable en statut "
            f"{quote.status.value}"
        )
    if (pourcentage is None) == (montant is None):
        raise ErreurMoteur("Indiquer soit un pourcentage, soit un montant d'acompte")

    total_ttc = aggregate(quote.items, bornes).total_ttc
    if pourcentage is not None:
        montant = calculer_acompte(total_ttc, pourcentage)
    else:
        montant = arrondir(Decimal(montant))

    if montant <= ZERO:
        raise ErreurMoteur("Le montant de l'acompte doit etre positif")
    if montant > total_ttc:
        raise ErreurMoteur(
            f"Acompte {montant} superieur au total TTC {total_ttc}"
        )

    return quote.model_copy(
        update={
            "deposit_percent": Decimal(pourcentage) if pourcentage is not None else None,
            "deposit_amount": montant,
            "deposit_status": DepositStatus.PENDING,
        }
    )


def enregistrer_acompte(
    quote: Quote,
    methode: DepositMethod | str,
    maintenant: datetime.datetime | None = None,
) -> Quote:
    """Marque l'acompte comme encaisse et fait passer le devis en deposit_paid.

    Raises:
        DepositAlreadyPaid: acompte deja marque comme paye.
        ErreurMoteur: moyen de paiement inconnu.
        IllegalTransition: devis non signe ou acompte absent.
    """
    if maintenant is None:
        maintenant = datetime.datetime.now()

    if quote.deposit_status == DepositStatus.PAID:
        raise DepositAlreadyPaid(
            f"Devis {quote.number or quote.id}: l'acompte est deja marque comme paye"
        )
    try:
        methode = DepositMethod(methode)
    except ValueError:
        valides = ", ".join(m.value for m in DepositMethod)
        raise ErreurMoteur(
            f"Methode de paiement invalide: {methode} (valides: {valides})"
        ) from None

    paye = quote.model_copy(
        update={
            "deposit_status": DepositStatus.PAID,
            "deposit_paid_at": maintenant,
            "deposit_method": methode,
        }
    )
    resultat = transition(paye, QuoteStatus.DEPOSIT_PAID, maintenant)
    logger.info(
        "Devis %s: acompte de %s encaisse (%s)",
        quote.number or quote.id,
        resultat.deposit_amount,
        methode.value,
    )
    return resultat
