"""Tests du graphe de statuts, des paiements et de l'edition des lignes."""

from __future__ import annotations

import datetime
from decimal import Decimal

import pytest
from freezegun import freeze_time
from pydantic import ValidationError

from devispro.cycle.edition import ajouter_ligne, est_modifiable, remplacer_lignes
from devispro.cycle.etats import (
    TRANSITIONS_DEVIS,
    TRANSITIONS_FACTURE,
    envoyer,
    est_terminal,
    statut_effectif,
    transition,
    transitions_possibles,
)
from devispro.cycle.paiements import enregistrer_paiement
from devispro.erreurs import (
    DocumentLocked,
    ErreurMoteur,
    IllegalTransition,
    InvalidLineItem,
    OverPayment,
)
from devispro.models.documents import (
    DepositStatus,
    Invoice,
    InvoiceStatus,
    LineItem,
    Quote,
    QuoteStatus,
)

MAINTENANT = datetime.datetime(2026, 3, 10, 14, 30)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _ligne(quantite="10", prix="45.00", tva="10") -> LineItem:
    return LineItem(
        description="Pose de carrelage (m2)",
        quantity=Decimal(quantite),
        unit_price_ht=Decimal(prix),
        vat_rate_percent=Decimal(tva),
    )


def _devis(**kwargs) -> Quote:
    """Devis d'exemple: 450 HT, TVA 10%, 495 TTC."""
    defaults = dict(number="DEV-2026-001", client_ref="client-1", items=(_ligne(),))
    defaults.update(kwargs)
    return Quote(**defaults)


def _facture(**kwargs) -> Invoice:
    """Facture d'exemple: 1000 HT, TVA 20%, 1200 TTC."""
    defaults = dict(
        number="FAC-2026-001",
        client_ref="client-1",
        items=(_ligne("1", "1000", "20"),),
        issue_date=datetime.date(2026, 3, 1),
        due_date=datetime.date(2026, 3, 31),
        subtotal_ht=Decimal("1000.00"),
        total_vat=Decimal("200.00"),
        total_ttc=Decimal("1200.00"),
    )
    defaults.update(kwargs)
    return Invoice(**defaults)


def _paires_absentes(table, statuts):
    aretes = {(t.source, t.cible) for t in table}
    return [(s, c) for s in statuts for c in statuts if (s, c) not in aretes]


# ---------------------------------------------------------------------------
# Devis
# ---------------------------------------------------------------------------


class TestTransitionsDevis:
    def test_envoi_horodate(self):
        devis = transition(_devis(), QuoteStatus.SENT, MAINTENANT)
        assert devis.status == QuoteStatus.SENT
        assert devis.sent_at == MAINTENANT

    def test_document_source_inchange(self):
        avant = _devis()
        transition(avant, QuoteStatus.SENT, MAINTENANT)
        assert avant.status == QuoteStatus.DRAFT
        assert avant.sent_at is None

    def test_statut_non_assignable(self):
        devis = _devis()
        with pytest.raises(ValidationError):
            devis.status = QuoteStatus.SIGNED

    def test_envoi_sans_lignes_refuse(self):
        with pytest.raises(IllegalTransition, match="aucune ligne"):
            transition(_devis(items=()), QuoteStatus.SENT)

    def test_retour_arriere_refuse(self):
        devis = _devis(status=QuoteStatus.SIGNED, signature_ref="sig-1")
        with pytest.raises(IllegalTransition, match="signed -> sent"):
            transition(devis, QuoteStatus.SENT)

    def test_saut_de_precondition_refuse(self):
        with pytest.raises(IllegalTransition):
            transition(_devis(), QuoteStatus.DEPOSIT_PAID)

    def test_signature_obligatoire(self):
        devis = _devis(status=QuoteStatus.SENT)
        with pytest.raises(IllegalTransition, match="signature"):
            transition(devis, QuoteStatus.SIGNED)

        signe = transition(
            devis.model_copy(update={"signature_ref": "sig-1"}), QuoteStatus.SIGNED, MAINTENANT
        )
        assert signe.status == QuoteStatus.SIGNED
        assert signe.signed_at == MAINTENANT

    def test_deposit_paid_exige_un_montant(self):
        devis = _devis(status=QuoteStatus.SIGNED)
        with pytest.raises(IllegalTransition, match="aucun montant"):
            transition(devis, QuoteStatus.DEPOSIT_PAID)

    def test_deposit_paid_exige_l_encaissement(self):
        devis = _devis(
            status=QuoteStatus.SIGNED,
            deposit_amount=Decimal("150.00"),
            deposit_status=DepositStatus.PENDING,
        )
        with pytest.raises(IllegalTransition, match="non encaisse"):
            transition(devis, QuoteStatus.DEPOSIT_PAID)

    def test_terminer_sans_acompte(self):
        devis = transition(_devis(status=QuoteStatus.SIGNED), QuoteStatus.COMPLETED, MAINTENANT)
        assert devis.completed_at == MAINTENANT
        assert est_terminal(devis)

    def test_terminer_refuse_si_acompte_prevu(self):
        devis = _devis(
            status=QuoteStatus.SIGNED,
            deposit_amount=Decimal("150.00"),
            deposit_status=DepositStatus.PENDING,
        )
        with pytest.raises(IllegalTransition, match="deposit_paid"):
            transition(devis, QuoteStatus.COMPLETED)

    def test_statut_texte_accepte(self):
        assert transition(_devis(), "sent").status == QuoteStatus.SENT

    def test_statut_inconnu(self):
        with pytest.raises(IllegalTransition, match="statut inconnu"):
            transition(_devis(), "archived")

    def test_annulation_depuis_brouillon(self):
        devis = transition(_devis(), QuoteStatus.CANCELED, MAINTENANT)
        assert devis.canceled_at == MAINTENANT
        assert transitions_possibles(devis) == []

    @pytest.mark.parametrize(
        "source,cible", _paires_absentes(TRANSITIONS_DEVIS, list(QuoteStatus))
    )
    def test_aretes_absentes_refusees(self, source, cible):
        devis = _devis(
            status=source,
            signature_ref="sig-1",
            deposit_amount=Decimal("100.00"),
            deposit_status=DepositStatus.PAID,
        )
        with pytest.raises(IllegalTransition):
            transition(devis, cible)


# ---------------------------------------------------------------------------
# Factures
# ---------------------------------------------------------------------------


class TestTransitionsFacture:
    @pytest.mark.parametrize(
        "source,cible", _paires_absentes(TRANSITIONS_FACTURE, list(InvoiceStatus))
    )
    def test_aretes_absentes_refusees(self, source, cible):
        with pytest.raises(IllegalTransition):
            transition(_facture(payment_status=source), cible)

    def test_brouillon_vers_partial_exige_un_acompte(self):
        with pytest.raises(IllegalTransition, match="acompte"):
            transition(_facture(), InvoiceStatus.PARTIAL)

    def test_overdue_avant_echeance_refuse(self):
        facture = _facture(payment_status=InvoiceStatus.SENT)
        with pytest.raises(IllegalTransition, match="non depassee"):
            transition(facture, InvoiceStatus.OVERDUE, datetime.datetime(2026, 3, 31, 23, 0))

    def test_overdue_apres_echeance(self):
        facture = _facture(payment_status=InvoiceStatus.SENT)
        retard = transition(facture, InvoiceStatus.OVERDUE, datetime.datetime(2026, 4, 1, 8, 0))
        assert retard.payment_status == InvoiceStatus.OVERDUE

    def test_facture_payee_annulable(self):
        facture = _facture(payment_status=InvoiceStatus.PAID, paid_amount=Decimal("1200.00"))
        annulee = transition(facture, InvoiceStatus.CANCELED, MAINTENANT)
        assert annulee.payment_status == InvoiceStatus.CANCELED
        assert est_terminal(annulee)
        assert not est_terminal(facture)

    def test_envoyer_partial_conserve_le_statut(self):
        facture = _facture(payment_status=InvoiceStatus.PARTIAL, paid_amount=Decimal("300.00"))
        envoyee = envoyer(facture, MAINTENANT)
        assert envoyee.payment_status == InvoiceStatus.PARTIAL
        assert envoyee.sent_at == MAINTENANT

    def test_envoyer_brouillon(self):
        envoyee = envoyer(_facture(), MAINTENANT)
        assert envoyee.payment_status == InvoiceStatus.SENT
        assert envoyee.sent_at == MAINTENANT


class TestStatutEffectif:
    @freeze_time("2026-04-15")
    def test_sent_echue_vue_overdue(self):
        facture = _facture(payment_status=InvoiceStatus.SENT)
        assert statut_effectif(facture) == InvoiceStatus.OVERDUE
        # Rien n'est ecrit
        assert facture.payment_status == InvoiceStatus.SENT

    @freeze_time("2026-03-31")
    def test_jour_de_l_echeance(self):
        facture = _facture(payment_status=InvoiceStatus.SENT)
        assert statut_effectif(facture) == InvoiceStatus.SENT

    @freeze_time("2026-04-15")
    def test_partial_echue_reste_partial(self):
        facture = _facture(payment_status=InvoiceStatus.PARTIAL, paid_amount=Decimal("100.00"))
        assert statut_effectif(facture) == InvoiceStatus.PARTIAL

    def test_date_explicite(self):
        facture = _facture(payment_status=InvoiceStatus.SENT)
        assert statut_effectif(facture, datetime.date(2026, 4, 1)) == InvoiceStatus.OVERDUE


# ---------------------------------------------------------------------------
# Paiements
# ---------------------------------------------------------------------------


class TestPaiements:
    def test_paiement_partiel(self):
        facture = enregistrer_paiement(
            _facture(payment_status=InvoiceStatus.SENT), Decimal("200"), MAINTENANT
        )
        assert facture.payment_status == InvoiceStatus.PARTIAL
        assert facture.paid_amount == Decimal("200.00")
        assert facture.remaining == Decimal("1000.00")

    def test_solde(self):
        facture = _facture(payment_status=InvoiceStatus.SENT)
        facture = enregistrer_paiement(facture, Decimal("200"), MAINTENANT)
        facture = enregistrer_paiement(facture, Decimal("500"), MAINTENANT)
        assert facture.payment_status == InvoiceStatus.PARTIAL
        facture = enregistrer_paiement(facture, Decimal("500"), MAINTENANT)
        assert facture.payment_status == InvoiceStatus.PAID
        assert facture.paid_at == MAINTENANT
        assert facture.remaining == Decimal("0")

    def test_paiement_sur_facture_en_retard(self):
        facture = _facture(payment_status=InvoiceStatus.OVERDUE)
        assert (
            enregistrer_paiement(facture, Decimal("1200"), MAINTENANT).payment_status
            == InvoiceStatus.PAID
        )

    def test_trop_percu_refuse(self):
        facture = _facture(payment_status=InvoiceStatus.SENT, paid_amount=Decimal("1000"))
        with pytest.raises(OverPayment):
            enregistrer_paiement(facture, Decimal("200.01"))

    def test_montant_nul_refuse(self):
        with pytest.raises(ErreurMoteur, match="non positif"):
            enregistrer_paiement(_facture(payment_status=InvoiceStatus.SENT), Decimal("0"))

    def test_brouillon_non_encaissable(self):
        with pytest.raises(IllegalTransition):
            enregistrer_paiement(_facture(), Decimal("100"))

    def test_invariant_montant_regle(self):
        with pytest.raises(ValidationError):
            _facture(paid_amount=Decimal("1500"))


# ---------------------------------------------------------------------------
# Edition des lignes
# ---------------------------------------------------------------------------


class TestEdition:
    def test_modifiable_selon_statut(self):
        assert est_modifiable(_devis())
        assert est_modifiable(_devis(status=QuoteStatus.SENT))
        assert not est_modifiable(_devis(status=QuoteStatus.SIGNED))
        assert est_modifiable(_facture())
        assert not est_modifiable(_facture(payment_status=InvoiceStatus.SENT))

    def test_ajout_sur_brouillon(self):
        devis = ajouter_ligne(_devis(), _ligne("1", "80", "20"))
        assert len(devis.items) == 2

    def test_devis_signe_verrouille(self):
        devis = _devis(status=QuoteStatus.SIGNED, signature_ref="sig-1")
        with pytest.raises(DocumentLocked):
            ajouter_ligne(devis, _ligne())

    def test_facture_envoyee_verrouillee(self):
        with pytest.raises(DocumentLocked):
            remplacer_lignes(_facture(payment_status=InvoiceStatus.SENT), [_ligne()])

    def test_totaux_de_facture_recalcules(self):
        facture = remplacer_lignes(_facture(), [_ligne("1", "100", "20"), _ligne("1", "100", "5.5")])
        assert facture.subtotal_ht == Decimal("200.00")
        assert facture.total_vat == Decimal("25.50")
        assert facture.total_ttc == Decimal("225.50")
        assert facture.tax_rate == Decimal("12.75")

    def test_acompte_en_pourcentage_suit_le_total(self):
        devis = _devis(deposit_percent=Decimal("30"), deposit_amount=Decimal("148.50"))
        devis = ajouter_ligne(devis, _ligne("1", "50", "10"))
        # 550 TTC * 30%
        assert devis.deposit_amount == Decimal("165.00")

    def test_acompte_fixe_superieur_au_nouveau_total(self):
        devis = _devis(deposit_amount=Decimal("400.00"))
        with pytest.raises(InvalidLineItem, match="acompte"):
            remplacer_lignes(devis, [_ligne("1", "100", "20")])

    def test_ligne_invalide_refusee(self):
        with pytest.raises(InvalidLineItem):
            ajouter_ligne(_devis(), _ligne(quantite="0"))
