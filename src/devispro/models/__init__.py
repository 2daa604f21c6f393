"""Modeles de donnees du moteur (documents et montants)."""

from devispro.models.documents import (
    Client,
    DepositMethod,
    DepositStatus,
    Invoice,
    InvoiceStatus,
    LineItem,
    Quote,
    QuoteStatus,
    ReminderRecord,
)
from devispro.models.montants import Montant, arrondir, formater_euros

__all__ = [
    "Client",
    "DepositMethod",
    "DepositStatus",
    "Invoice",
    "InvoiceStatus",
    "LineItem",
    "Montant",
    "Quote",
    "QuoteStatus",
    "ReminderRecord",
    "arrondir",
    "formater_euros",
]
