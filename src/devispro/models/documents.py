"""Modeles de donnees: lignes, clients, devis et factures.

Les documents sont immuables (frozen): un statut ne s'assigne jamais
directement. Toute modification produit une copie; seul
`devispro.cycle.etats.transition` change `status` / `payment_status`.
"""

from __future__ import annotations

import datetime
import uuid
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from devispro.models.montants import ZERO, Montant, Nombre

MAX_RELANCES_DEFAUT = 3


def gen_id() -> str:
    return str(uuid.uuid4())


class QuoteStatus(str, Enum):
    """Statut d'un devis."""

    DRAFT = "draft"
    SENT = "sent"
    SIGNED = "signed"
    DEPOSIT_PAID = "deposit_paid"
    COMPLETED = "completed"
    CANCELED = "canceled"


class InvoiceStatus(str, Enum):
    """Statut de paiement d'une facture."""

    DRAFT = "draft"
    SENT = "sent"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELED = "canceled"


class DepositStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"


class DepositMethod(str, Enum):
    """Moyen de paiement d'un acompte saisi manuellement."""

    VIREMENT = "virement"
    CASH = "cash"
    CHEQUE = "cheque"
    AUTRE = "autre"


class LineItem(BaseModel):
    """Ligne chiffree d'un devis ou d'une facture.

    Les bornes (quantite > 0, prix >= 0, TVA 0..100) sont verifiees par
    `devispro.taxes.calcul.valider_ligne`, qui leve InvalidLineItem.
    """

    model_config = ConfigDict(frozen=True)

    description: str
    quantity: Nombre
    unit_price_ht: Montant
    vat_rate_percent: Nombre


class Client(BaseModel):
    """Client reference par les documents (partage, duree de vie independante)."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=gen_id)
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    postal_code: Optional[str] = None
    city: Optional[str] = None
    siret: Optional[str] = None

    def formatted_address(self) -> str:
        parts = [self.address_line1, self.address_line2, self.postal_code, self.city]
        return ", ".join(p for p in parts if p)


class ReminderRecord(BaseModel):
    """Trace d'audit d'une relance envoyee."""

    model_config = ConfigDict(frozen=True)

    sent_at: datetime.datetime
    rank: int


class Quote(BaseModel):
    """Devis. Cree en brouillon, lignes modifiables en draft et sent."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=gen_id)
    number: Optional[str] = None
    client_ref: str
    items: tuple[LineItem, ...] = ()
    status: QuoteStatus = QuoteStatus.DRAFT
    created_at: datetime.datetime = Field(default_factory=datetime.datetime.now)
    sent_at: Optional[datetime.datetime] = None
    signature_ref: Optional[str] = None
    signed_at: Optional[datetime.datetime] = None
    deposit_percent: Optional[Nombre] = None
    deposit_amount: Optional[Montant] = None
    deposit_status: Optional[DepositStatus] = None
    deposit_paid_at: Optional[datetime.datetime] = None
    deposit_method: Optional[DepositMethod] = None
    completed_at: Optional[datetime.datetime] = None
    canceled_at: Optional[datetime.datetime] = None
    reminder_count: int = Field(default=0, ge=0)
    max_reminders: int = Field(default=MAX_RELANCES_DEFAUT, ge=0)
    reminders: tuple[ReminderRecord, ...] = ()

    @model_validator(mode="after")
    def _verifier_relances(self) -> "Quote":
        if self.reminder_count > self.max_reminders:
            raise ValueError("reminder_count depasse max_reminders")
        return self


class Invoice(BaseModel):
    """Facture, issue d'un devis (quote_ref unique) ou saisie directement."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=gen_id)
    number: Optional[str] = None
    quote_ref: Optional[str] = None
    client_ref: str
    client_name: str = ""
    client_email: str = ""
    client_address: str = ""
    client_siret: str = ""
    items: tuple[LineItem, ...] = ()
    payment_status: InvoiceStatus = InvoiceStatus.DRAFT
    issue_date: datetime.date
    due_date: datetime.date
    subtotal_ht: Montant = ZERO
    total_vat: Montant = ZERO
    total_ttc: Montant = ZERO
    tax_rate: Nombre = Decimal("20")
    paid_amount: Montant = ZERO
    payment_terms: str = ""
    notes: str = ""
    sent_at: Optional[datetime.datetime] = None
    paid_at: Optional[datetime.datetime] = None
    canceled_at: Optional[datetime.datetime] = None
    reminder_count: int = Field(default=0, ge=0)
    max_reminders: int = Field(default=MAX_RELANCES_DEFAUT, ge=0)
    reminders: tuple[ReminderRecord, ...] = ()

    @model_validator(mode="after")
    def _verifier_invariants(self) -> "Invoice":
        if self.paid_amount < ZERO or self.paid_amount > self.total_ttc:
            raise ValueError("paid_amount doit etre compris entre 0 et total_ttc")
        if self.reminder_count > self.max_reminders:
            raise ValueError("reminder_count depasse max_reminders")
        return self

    @property
    def remaining(self) -> Decimal:
        """Reste a payer."""
        return self.total_ttc - self.paid_amount
