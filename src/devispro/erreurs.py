"""Taxonomie des erreurs du moteur de devis/factures.

Chaque erreur porte un `code` stable. Les fonctions du moteur levent ces
exceptions; la couche `devispro.services` les convertit en valeurs
(dictionnaires etiquetes) avant qu'elles ne sortent du module.
"""

from __future__ import annotations


class ErreurMoteur(ValueError):
    """Erreur metier du moteur, destinee a l'appelant ou a l'utilisateur."""

    code = "erreur_moteur"

    def vers_dict(self) -> dict:
        """Represente l'erreur comme une valeur etiquetee."""
        return {"status": "erreur", "code": self.code, "message": str(self)}


class InvalidLineItem(ErreurMoteur):
    """Ligne invalide: quantite, prix ou taux de TVA hors bornes."""

    code = "invalid_line_item"

    def __init__(self, message: str, champ: str | None = None, index: int | None = None) -> None:
        if index is not None:
            message = f"Ligne {index}: {message}"
        super().__init__(message)
        self.champ = champ
        self.index = index


class IllegalTransition(ErreurMoteur):
    """Changement de statut absent du graphe ou precondition non remplie."""

    code = "illegal_transition"

    def __init__(self, source: str, cible: str, raison: str | None = None) -> None:
        message = f"Transition {source} -> {cible} interdite"
        if raison:
            message = f"{message}: {raison}"
        super().__init__(message)
        self.source = source
        self.cible = cible
        self.raison = raison


class QuoteNotConvertible(ErreurMoteur):
    """Le devis doit etre signe avant d'etre facture."""

    code = "quote_not_convertible"


class DuplicateConversion(ErreurMoteur):
    """Une facture existe deja pour ce devis."""

    code = "duplicate_conversion"


class DocumentNotSent(ErreurMoteur):
    """Relance evaluee sur un document jamais envoye."""

    code = "document_not_sent"


class DocumentLocked(ErreurMoteur):
    """Lignes modifiees alors que le document est verrouille."""

    code = "document_locked"


class DepositAlreadyPaid(ErreurMoteur):
    """L'acompte du devis est deja marque comme paye."""

    code = "deposit_already_paid"


class OverPayment(ErreurMoteur):
    """Paiement qui porterait le montant regle au-dela du total TTC."""

    code = "over_payment"


class ReminderCapReached(ErreurMoteur):
    """Nombre maximal de relances atteint."""

    code = "reminder_cap_reached"
