"""Sous-commandes CLI pour les relances de devis et de factures."""

from __future__ import annotations

from typing import Optional

import typer
from rich.table import Table

from devispro.cli.commun import (
    console,
    echouer,
    get_registre_devis,
    get_registre_factures,
)
from devispro.erreurs import ErreurMoteur
from devispro.registre import ConflitEcriture
from devispro.relances.planificateur import (
    ParametresRelance,
    apercu_relances,
    enregistrer_relance,
)

relances_app = typer.Typer(no_args_is_help=True)


@relances_app.command(name="lister")
def lister(
    genre: Optional[str] = typer.Option(
        None, "--type", "-t", help="Limiter a 'devis' ou 'facture'"
    ),
) -> None:
    """Afficher les documents en attente de reponse et les relances dues."""
    from devispro.cli.app import get_config

    if genre not in (None, "devis", "facture"):
        echouer(f"Type invalide: {genre} (devis ou facture)")

    config = get_config()
    genres = [genre] if genre else ["devis", "facture"]

    tableau = Table(title="Relances", show_header=True)
    tableau.add_column("Document", style="cyan")
    tableau.add_column("Type")
    tableau.add_column("Jours", justify="right")
    tableau.add_column("Relances", justify="right")
    tableau.add_column("Prochaine")

    total_pending = ready = total_reminders = 0
    for g in genres:
        parametres = ParametresRelance.depuis_config(config, g)
        documents = (
            get_registre_devis().lister() if g == "devis" else get_registre_factures().lister()
        )
        apercu = apercu_relances(documents, parametres)
        total_pending += apercu.total_pending
        ready += apercu.ready_for_reminder
        total_reminders += apercu.total_reminders

        for ligne in apercu.documents:
            etat = ligne.etat
            if etat.next_reminder_due:
                prochaine = "[red bold]maintenant[/red bold]"
            elif etat.next_reminder_in is not None:
                prochaine = f"dans {etat.next_reminder_in} j"
            else:
                prochaine = "[dim]plafond atteint[/dim]"
            tableau.add_row(
                ligne.reference,
                ligne.genre,
                str(etat.days_since_sent),
                f"{etat.reminder_count}/{parametres.max_reminders}",
                prochaine,
            )

    if total_pending:
        console.print(tableau)
    else:
        console.print("[yellow]Aucun document en attente de reponse.[/yellow]")

    console.print(
        f"\nEn attente: {total_pending}  A relancer: {ready}  "
        f"Relances envoyees: {total_reminders}"
    )
    if not config.relances_actives:
        console.print("[dim]Relances desactivees dans la configuration.[/dim]")
    elif config.message_relance:
        console.print(f"Message de relance: {config.message_relance}")


@relances_app.command(name="marquer")
def marquer(
    numero: str = typer.Argument(help="Numero du devis ou de la facture relance"),
) -> None:
    """Enregistrer qu'une relance a ete envoyee pour un document."""
    from devispro.cli.app import get_config

    config = get_config()
    registre = get_registre_devis()
    doc = registre.obtenir(numero)
    champ = "status"
    if doc is None:
        registre = get_registre_factures()
        doc = registre.obtenir(numero)
        champ = "payment_status"
    if doc is None:
        echouer(f"Document {numero} introuvable")

    try:
        modifie = enregistrer_relance(doc, max_relances=config.max_relances)
        registre.remplacer(
            modifie,
            statut_attendu=getattr(doc, champ),
            relances_attendues=doc.reminder_count,
        )
    except (ErreurMoteur, ConflitEcriture) as e:
        echouer(str(e))

    console.print(
        f"[green]Relance {modifie.reminder_count} enregistree pour {numero}[/green]"
    )
