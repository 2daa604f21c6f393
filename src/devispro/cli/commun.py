"""Utilitaires partages par les sous-commandes CLI."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import NoReturn

import typer
from rich.console import Console

from devispro.models.documents import InvoiceStatus, QuoteStatus
from devispro.models.montants import formater_euros
from devispro.registre import RegistreClients, RegistreDevis, RegistreFactures

console = Console()


def get_registre_devis() -> RegistreDevis:
    from devispro.cli.app import get_data_dir

    return RegistreDevis(chemin=get_data_dir() / "devis.yaml")


def get_registre_factures() -> RegistreFactures:
    from devispro.cli.app import get_data_dir

    return RegistreFactures(chemin=get_data_dir() / "factures.yaml")


def get_registre_clients() -> RegistreClients:
    from devispro.cli.app import get_data_dir

    return RegistreClients(chemin=get_data_dir() / "clients.yaml")


def lire_decimal(valeur: str, libelle: str) -> Decimal:
    """Convertit une saisie en Decimal (virgule acceptee) ou quitte en erreur."""
    try:
        return Decimal(valeur.replace(",", ".").strip())
    except InvalidOperation:
        echouer(f"Erreur: {libelle} invalide ({valeur})")


def echouer(message: str) -> NoReturn:
    """Affiche un message d'erreur et quitte avec le code 1."""
    console.print(f"[red]{message}[/red]")
    raise typer.Exit(1)


def formater_montant(montant: Decimal) -> str:
    return formater_euros(montant)


def statut_style(statut: QuoteStatus | InvoiceStatus) -> str:
    """Retourne le style Rich pour un statut de devis ou de facture."""
    styles = {
        "draft": "dim",
        "sent": "yellow",
        "signed": "green",
        "deposit_paid": "magenta",
        "completed": "green bold",
        "partial": "cyan",
        "paid": "green",
        "overdue": "red bold",
        "canceled": "red",
    }
    return styles.get(statut.value, "")


def statut_markup(statut: QuoteStatus | InvoiceStatus) -> str:
    style = statut_style(statut)
    if not style:
        return statut.value.upper()
    return f"[{style}]{statut.value.upper()}[/{style}]"
