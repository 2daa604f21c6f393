"""Edition des lignes d'un document tant qu'il est modifiable.

Devis: lignes modifiables en draft et sent, figees a partir de signed.
Facture: lignes modifiables en draft seulement.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Union

from devispro.acomptes.ledger import calculer_acompte
from devispro.erreurs import DocumentLocked, InvalidLineItem
from devispro.models.documents import Invoice, InvoiceStatus, LineItem, Quote, QuoteStatus
from devispro.taxes.calcul import BORNES_DEFAUT, BornesTVA, aggregate, effective_rate

Document = Union[Quote, Invoice]

STATUTS_MODIFIABLES_DEVIS = frozenset({QuoteStatus.DRAFT, QuoteStatus.SENT})
STATUTS_MODIFIABLES_FACTURE = frozenset({InvoiceStatus.DRAFT})


def est_modifiable(doc: Document) -> bool:
    """Vrai si les lignes du document peuvent encore changer."""
    if isinstance(doc, Quote):
        return doc.status in STATUTS_MODIFIABLES_DEVIS
    return doc.payment_status in STATUTS_MODIFIABLES_FACTURE


def remplacer_lignes(
    doc: Document,
    items: Iterable[LineItem],
    bornes: BornesTVA = BORNES_DEFAUT,
) -> Document:
    """Remplace les lignes d'un document modifiable.

    Les totaux d'une facture sont recalcules. Pour un devis avec un acompte
    en pourcentage, le montant demande suit le nouveau total.

    Raises:
        DocumentLocked: document verrouille.
        InvalidLineItem: ligne invalide, ou total TTC inferieur a l'acompte fixe.
    """
    if not est_modifiable(doc):
        etat = doc.status if isinstance(doc, Quote) else doc.payment_status
        raise DocumentLocked(
            f"{doc.number or doc.id}: lignes figees en statut {etat.value}"
        )

    items = tuple(items)
    totaux = aggregate(items, bornes)

    if isinstance(doc, Invoice):
        return doc.model_copy(
            update={
                "items": items,
                "subtotal_ht": totaux.subtotal_ht,
                "total_vat": totaux.total_vat,
                "total_ttc": totaux.total_ttc,
                "tax_rate": effective_rate(items, bornes),
            }
        )

    modifications: dict = {"items": items}
    if doc.deposit_percent is not None:
        modifications["deposit_amount"] = calculer_acompte(
            totaux.total_ttc, doc.deposit_percent
        )
    elif doc.deposit_amount is not None and doc.deposit_amount > totaux.total_ttc:
        raise InvalidLineItem(
            f"total TTC {totaux.total_ttc} inferieur a l'acompte demande "
            f"{doc.deposit_amount}"
        )
    return doc.model_copy(update=modifications)


def ajouter_ligne(
    doc: Document,
    item: LineItem,
    bornes: BornesTVA = BORNES_DEFAUT,
) -> Document:
    """Ajoute une ligne en fin de document."""
    return remplacer_lignes(doc, (*doc.items, item), bornes)
