"""Sous-commandes CLI pour la gestion des factures."""

from __future__ import annotations

import datetime
from typing import Optional

import typer
from rich.table import Table

from devispro.cli.commun import (
    console,
    echouer,
    formater_montant,
    get_registre_factures,
    lire_decimal,
    statut_markup,
)
from devispro.cycle.etats import envoyer as envoyer_document
from devispro.cycle.etats import statut_effectif, transition
from devispro.cycle.paiements import enregistrer_paiement
from devispro.erreurs import ErreurMoteur
from devispro.models.documents import Invoice, InvoiceStatus
from devispro.registre import ConflitEcriture, RegistreFactures
from devispro.taxes.calcul import total_ligne_affichage

facture_app = typer.Typer(no_args_is_help=True)


def _charger(registre: RegistreFactures, numero: str) -> Invoice:
    facture = registre.obtenir(numero)
    if facture is None:
        echouer(f"Facture {numero} introuvable")
    return facture


def _enregistrer(registre: RegistreFactures, avant: Invoice, apres: Invoice) -> None:
    try:
        registre.remplacer(apres, statut_attendu=avant.payment_status)
    except ConflitEcriture as e:
        echouer(f"Conflit d'ecriture: {e}")


@facture_app.command(name="lister")
def lister(
    statut: Optional[str] = typer.Option(
        None, "--statut", "-s", help="Filtrer par statut (effectif)"
    ),
) -> None:
    """Lister les factures."""
    filtre = None
    if statut:
        try:
            filtre = InvoiceStatus(statut.lower())
        except ValueError:
            echouer(
                f"Statut invalide: {statut}\n"
                f"Statuts valides: {', '.join(s.value for s in InvoiceStatus)}"
            )

    aujourd_hui = datetime.date.today()
    factures = [
        f
        for f in get_registre_factures().lister()
        if filtre is None or statut_effectif(f, aujourd_hui) == filtre
    ]
    if not factures:
        console.print("[yellow]Aucune facture trouvee.[/yellow]")
        return

    tableau = Table(title="Factures", show_header=True)
    tableau.add_column("Numero", style="cyan")
    tableau.add_column("Client")
    tableau.add_column("Date")
    tableau.add_column("Echeance")
    tableau.add_column("Total TTC", justify="right")
    tableau.add_column("Reste du", justify="right")
    tableau.add_column("Statut")

    for f in factures:
        tableau.add_row(
            f.number or f.id,
            f.client_name,
            str(f.issue_date),
            str(f.due_date),
            formater_montant(f.total_ttc),
            formater_montant(f.remaining),
            statut_markup(statut_effectif(f, aujourd_hui)),
        )

    console.print(tableau)


@facture_app.command(name="voir")
def voir(
    numero: str = typer.Argument(help="Numero de facture"),
) -> None:
    """Afficher les details d'une facture."""
    f = _charger(get_registre_factures(), numero)

    console.print(f"\n[bold]Facture {f.number or f.id}[/bold]")
    if f.quote_ref:
        console.print(f"  Devis d'origine: {f.quote_ref}")
    console.print(f"  Client: {f.client_name}")
    if f.client_address:
        console.print(f"  Adresse: {f.client_address}")
    console.print(f"  Date: {f.issue_date}  Echeance: {f.due_date}")
    console.print(f"  Statut: {statut_markup(statut_effectif(f))}")

    console.print("\n  [bold]Lignes:[/bold]")
    for item in f.items:
        console.print(
            f"    {item.description}: {item.quantity} x "
            f"{formater_montant(item.unit_price_ht)} HT "
            f"(TVA {item.vat_rate_percent}%) = {formater_montant(total_ligne_affichage(item))}"
        )

    console.print(f"\n  Total HT: {formater_montant(f.subtotal_ht)}")
    console.print(f"  TVA {f.tax_rate}%: {formater_montant(f.total_vat)}")
    console.print(f"  [bold]Total TTC: {formater_montant(f.total_ttc)}[/bold]")
    console.print(f"  Deja regle: {formater_montant(f.paid_amount)}")
    console.print(f"  Reste du: {formater_montant(f.remaining)}")

    if f.notes:
        console.print(f"\n  Notes: {f.notes}")
    if f.payment_terms:
        console.print(f"  Conditions: {f.payment_terms}")
    if f.reminder_count:
        console.print(f"  Relances: {f.reminder_count}/{f.max_reminders}")


@facture_app.command(name="envoyer")
def envoyer(
    numero: str = typer.Argument(help="Numero de facture"),
) -> None:
    """Marquer une facture comme envoyee au client."""
    registre = get_registre_factures()
    facture = _charger(registre, numero)
    try:
        modifiee = envoyer_document(facture)
    except ErreurMoteur as e:
        echouer(str(e))
    _enregistrer(registre, facture, modifiee)
    console.print(f"[green]Facture {numero} envoyee[/green]")


@facture_app.command(name="payer")
def payer(
    numero: str = typer.Argument(help="Numero de facture"),
    montant: Optional[str] = typer.Option(
        None, "--montant", "-m", help="Montant recu (defaut: reste du)"
    ),
) -> None:
    """Enregistrer un paiement recu."""
    registre = get_registre_factures()
    facture = _charger(registre, numero)
    recu = lire_decimal(montant, "montant") if montant else facture.remaining
    try:
        modifiee = enregistrer_paiement(facture, recu)
    except ErreurMoteur as e:
        echouer(str(e))
    _enregistrer(registre, facture, modifiee)
    console.print(
        f"[green]Paiement de {formater_montant(recu)} enregistre[/green] "
        f"(statut: {statut_markup(modifiee.payment_status)}, "
        f"reste du: {formater_montant(modifiee.remaining)})"
    )


@facture_app.command(name="annuler")
def annuler(
    numero: str = typer.Argument(help="Numero de facture"),
) -> None:
    """Annuler une facture."""
    registre = get_registre_factures()
    facture = _charger(registre, numero)
    try:
        modifiee = transition(facture, InvoiceStatus.CANCELED)
    except ErreurMoteur as e:
        echouer(str(e))
    _enregistrer(registre, facture, modifiee)
    console.print(f"[green]Facture {numero} ANNULEE[/green]")


@facture_app.command(name="retards")
def retards(
    enregistrer: bool = typer.Option(
        False, "--enregistrer", help="Ecrire le statut overdue dans le registre"
    ),
) -> None:
    """Lister les factures envoyees dont l'echeance est depassee."""
    registre = get_registre_factures()
    aujourd_hui = datetime.date.today()
    en_retard = [
        f
        for f in registre.lister(statut=InvoiceStatus.SENT)
        if statut_effectif(f, aujourd_hui) == InvoiceStatus.OVERDUE
    ]
    if not en_retard:
        console.print("[green]Aucune facture en retard.[/green]")
        return

    for f in en_retard:
        jours = (aujourd_hui - f.due_date).days
        console.print(
            f"  [red]{f.number or f.id}[/red] {f.client_name}: "
            f"{formater_montant(f.remaining)} (echue depuis {jours} jour(s))"
        )
        if enregistrer:
            try:
                _enregistrer(registre, f, transition(f, InvoiceStatus.OVERDUE))
            except ErreurMoteur as e:
                echouer(str(e))

    if enregistrer:
        console.print(f"[yellow]{len(en_retard)} facture(s) marquee(s) OVERDUE[/yellow]")
