"""Calcul HT/TVA/TTC par ligne et par document.

Toute l'arithmetique utilise Decimal. Aucun arrondi par ligne: les montants
HT et TVA sont sommes sans arrondi, puis chaque agregat est arrondi
independamment au cent (ROUND_HALF_UP). Le TTC est arrondi depuis la somme
non arrondie HT + TVA, ce qui peut laisser un residu de +/-0.01 entre
sous_total + TVA affiches et le TTC. Ce residu est conserve tel quel pour
rester identique aux documents deja emis.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal

from devispro.erreurs import InvalidLineItem
from devispro.models.documents import LineItem
from devispro.models.montants import ZERO, arrondir

CENT = Decimal("100")
TAUX_AFFICHAGE_DEFAUT = Decimal("20")


@dataclass(frozen=True)
class BornesTVA:
    """Bornes acceptees pour le taux de TVA d'une ligne, en pourcentage."""

    minimum: Decimal = Decimal("0")
    maximum: Decimal = Decimal("100")


BORNES_DEFAUT = BornesTVA()


@dataclass(frozen=True)
class TotauxLigne:
    """Montants non arrondis d'une ligne."""

    ht: Decimal
    vat: Decimal
    ttc: Decimal


@dataclass(frozen=True)
class TotauxDocument:
    """Totaux arrondis d'un document."""

    subtotal_ht: Decimal
    total_vat: Decimal
    total_ttc: Decimal

    @property
    def residu(self) -> Decimal:
        """Ecart d'arrondi entre TTC et HT + TVA affiches (0, +0.01 ou -0.01)."""
        return self.total_ttc - self.subtotal_ht - self.total_vat


def valider_ligne(
    item: LineItem,
    bornes: BornesTVA = BORNES_DEFAUT,
    index: int | None = None,
) -> None:
    """Verifie les bornes d'une ligne.

    Raises:
        InvalidLineItem: description vide, quantite <= 0, prix < 0 ou taux
            de TVA hors [minimum, maximum].
    """
    if not item.description or not item.description.strip():
        raise InvalidLineItem("description vide", champ="description", index=index)
    if item.quantity <= ZERO:
        raise InvalidLineItem(
            f"quantite non positive ({item.quantity})", champ="quantity", index=index
        )
    if item.unit_price_ht < ZERO:
        raise InvalidLineItem(
            f"prix unitaire negatif ({item.unit_price_ht})",
            champ="unit_price_ht",
            index=index,
        )
    if not bornes.minimum <= item.vat_rate_percent <= bornes.maximum:
        raise InvalidLineItem(
            f"taux de TVA {item.vat_rate_percent} hors de "
            f"[{bornes.minimum}, {bornes.maximum}]",
            champ="vat_rate_percent",
            index=index,
        )


def line_total(item: LineItem, bornes: BornesTVA = BORNES_DEFAUT) -> TotauxLigne:
    """Calcule HT, TVA et TTC d'une ligne, sans arrondi intermediaire."""
    valider_ligne(item, bornes)
    ht = item.quantity * item.unit_price_ht
    vat = ht * item.vat_rate_percent / CENT
    return TotauxLigne(ht=ht, vat=vat, ttc=ht + vat)


def aggregate(
    items: Iterable[LineItem],
    bornes: BornesTVA = BORNES_DEFAUT,
) -> TotauxDocument:
    """Agrege les lignes d'un document.

    Les sommes HT et TVA sont arrondies independamment; le TTC est arrondi
    depuis la somme non arrondie (voir le residu documente plus haut).
    """
    somme_ht = ZERO
    somme_vat = ZERO
    for index, item in enumerate(items, start=1):
        valider_ligne(item, bornes, index=index)
        ht = item.quantity * item.unit_price_ht
        somme_ht += ht
        somme_vat += ht * item.vat_rate_percent / CENT

    return TotauxDocument(
        subtotal_ht=arrondir(somme_ht),
        total_vat=arrondir(somme_vat),
        total_ttc=arrondir(somme_ht + somme_vat),
    )


def _valider_lignes(items: Iterable[LineItem], bornes: BornesTVA) -> list[LineItem]:
    lignes = list(items)
    for index, item in enumerate(lignes, start=1):
        valider_ligne(item, bornes, index=index)
    return lignes


def is_uniform_rate(
    items: Iterable[LineItem],
    bornes: BornesTVA = BORNES_DEFAUT,
) -> bool:
    """Vrai si toutes les lignes partagent un seul taux (liste vide: vrai)."""
    lignes = _valider_lignes(items, bornes)
    return len({item.vat_rate_percent for item in lignes}) <= 1


def effective_rate(
    items: Sequence[LineItem],
    bornes: BornesTVA = BORNES_DEFAUT,
) -> Decimal:
    """Taux de TVA a afficher sur le document.

    Taux commun si uniforme, sinon taux moyen pondere
    round(TVA / HT * 100, 2). Sert uniquement a l'affichage, jamais a
    recalculer des montants.

    Raises:
        InvalidLineItem: une ligne hors bornes, quel que soit le chemin pris.
    """
    lignes = _valider_lignes(items, bornes)
    if not lignes:
        return TAUX_AFFICHAGE_DEFAUT
    if is_uniform_rate(lignes, bornes):
        return lignes[0].vat_rate_percent

    totaux = aggregate(lignes, bornes)
    if totaux.subtotal_ht == ZERO:
        return TAUX_AFFICHAGE_DEFAUT
    return arrondir(totaux.total_vat / totaux.subtotal_ht * CENT)


def total_ligne_affichage(item: LineItem) -> Decimal:
    """HT arrondi d'une ligne, pour l'affichage seulement."""
    return arrondir(item.quantity * item.unit_price_ht)
