"""Tests du suivi des acomptes (devispro.acomptes.ledger)."""

from __future__ import annotations

import datetime
from decimal import Decimal

import pytest

from devispro.acomptes.ledger import (
    calculer_acompte,
    demander_acompte,
    deposit_paid,
    describe_deposit,
    enregistrer_acompte,
)
from devispro.erreurs import (
    DepositAlreadyPaid,
    DocumentLocked,
    ErreurMoteur,
    IllegalTransition,
)
from devispro.models.documents import (
    DepositMethod,
    DepositStatus,
    LineItem,
    Quote,
    QuoteStatus,
)

VERSEMENT = datetime.datetime(2026, 3, 15, 10, 0)


def _devis(**kwargs) -> Quote:
    """Devis de 1000 HT a 20% (1200 TTC)."""
    defaults = dict(
        number="DEV-2026-004",
        client_ref="client-1",
        items=(
            LineItem(
                description="Renovation salle de bain",
                quantity=Decimal("1"),
                unit_price_ht=Decimal("1000.00"),
                vat_rate_percent=Decimal("20"),
            ),
        ),
    )
    defaults.update(kwargs)
    return Quote(**defaults)


def _devis_acompte_paye(**kwargs) -> Quote:
    defaults = dict(
        status=QuoteStatus.DEPOSIT_PAID,
        signature_ref="sig-1",
        deposit_amount=Decimal("300.00"),
        deposit_status=DepositStatus.PAID,
        deposit_paid_at=VERSEMENT,
        deposit_method=DepositMethod.VIREMENT,
    )
    defaults.update(kwargs)
    return _devis(**defaults)


class TestDemanderAcompte:
    def test_en_pourcentage(self):
        devis = demander_acompte(_devis(), pourcentage=Decimal("30"))
        assert devis.deposit_amount == Decimal("360.00")
        assert devis.deposit_percent == Decimal("30")
        assert devis.deposit_status == DepositStatus.PENDING

    def test_en_montant(self):
        devis = demander_acompte(_devis(status=QuoteStatus.SIGNED), montant=Decimal("300"))
        assert devis.deposit_amount == Decimal("300.00")
        assert devis.deposit_percent is None

    def test_un_seul_parametre(self):
        with pytest.raises(ErreurMoteur):
            demander_acompte(_devis())
        with pytest.raises(ErreurMoteur):
            demander_acompte(_devis(), pourcentage=Decimal("30"), montant=Decimal("300"))

    def test_montant_superieur_au_total(self):
        with pytest.raises(ErreurMoteur, match="superieur"):
            demander_acompte(_devis(), montant=Decimal("1200.01"))

    def test_montant_nul(self):
        with pytest.raises(ErreurMoteur, match="positif"):
            demander_acompte(_devis(), montant=Decimal("0"))

    def test_deja_encaisse(self):
        with pytest.raises(DepositAlreadyPaid):
            demander_acompte(_devis_acompte_paye(), montant=Decimal("100"))

    def test_devis_termine(self):
        with pytest.raises(DocumentLocked):
            demander_acompte(_devis(status=QuoteStatus.COMPLETED), montant=Decimal("100"))

    def test_pourcentage_borne(self):
        assert calculer_acompte(Decimal("100"), Decimal("150")) == Decimal("100.00")
        assert calculer_acompte(Decimal("100"), Decimal("-5")) == Decimal("0.00")
        assert calculer_acompte(Decimal("99.99"), Decimal("33.333")) == Decimal("33.33")


class TestEnregistrerAcompte:
    def test_encaissement(self):
        devis = _devis(
            status=QuoteStatus.SIGNED,
            signature_ref="sig-1",
            deposit_amount=Decimal("300.00"),
            deposit_status=DepositStatus.PENDING,
        )
        paye = enregistrer_acompte(devis, "cheque", VERSEMENT)
        assert paye.status == QuoteStatus.DEPOSIT_PAID
        assert paye.deposit_status == DepositStatus.PAID
        assert paye.deposit_method == DepositMethod.CHEQUE
        assert paye.deposit_paid_at == VERSEMENT
        assert deposit_paid(paye) == Decimal("300.00")

    def test_double_encaissement(self):
        with pytest.raises(DepositAlreadyPaid):
            enregistrer_acompte(_devis_acompte_paye(), DepositMethod.CASH)

    def test_methode_invalide(self):
        devis = _devis(
            status=QuoteStatus.SIGNED,
            deposit_amount=Decimal("300.00"),
            deposit_status=DepositStatus.PENDING,
        )
        with pytest.raises(ErreurMoteur, match="Methode de paiement invalide"):
            enregistrer_acompte(devis, "bitcoin")

    def test_devis_non_signe(self):
        devis = _devis(
            status=QuoteStatus.SENT,
            deposit_amount=Decimal("300.00"),
            deposit_status=DepositStatus.PENDING,
        )
        with pytest.raises(IllegalTransition):
            enregistrer_acompte(devis, "virement")

    def test_sans_acompte_demande(self):
        with pytest.raises(IllegalTransition, match="aucun montant"):
            enregistrer_acompte(_devis(status=QuoteStatus.SIGNED), "virement")


class TestDescribeDeposit:
    def test_note_virement(self):
        assert (
            describe_deposit(_devis_acompte_paye())
            == "Acompte de 300,00 € deja verse le 15/03/2026 par virement"
        )

    def test_note_especes(self):
        note = describe_deposit(_devis_acompte_paye(deposit_method=DepositMethod.CASH))
        assert note.endswith("en especes")

    def test_methode_autre_sans_libelle(self):
        note = describe_deposit(_devis_acompte_paye(deposit_method=DepositMethod.AUTRE))
        assert note == "Acompte de 300,00 € deja verse le 15/03/2026"

    def test_date_inconnue(self):
        note = describe_deposit(_devis_acompte_paye(deposit_paid_at=None, deposit_method=None))
        assert note == "Acompte de 300,00 € deja verse le date inconnue"

    def test_acompte_en_attente(self):
        devis = _devis(deposit_amount=Decimal("300.00"), deposit_status=DepositStatus.PENDING)
        assert describe_deposit(devis) is None
        assert deposit_paid(devis) == Decimal("0")

    def test_montant_avec_milliers(self):
        devis = _devis_acompte_paye(deposit_amount=Decimal("1234.5"))
        assert describe_deposit(devis).startswith("Acompte de 1 234,50 €")
