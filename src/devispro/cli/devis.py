"""Sous-commandes CLI pour la gestion des devis."""

from __future__ import annotations

import datetime
from typing import Optional

import typer
from rich.table import Table

from devispro.acomptes.ledger import demander_acompte, enregistrer_acompte
from devispro.cli.commun import (
    console,
    echouer,
    formater_montant,
    get_registre_clients,
    get_registre_devis,
    get_registre_factures,
    lire_decimal,
    statut_markup,
)
from devispro.conversion import convert
from devispro.cycle.edition import ajouter_ligne
from devispro.cycle.etats import envoyer as envoyer_document
from devispro.cycle.etats import transition, transitions_possibles
from devispro.erreurs import ErreurMoteur
from devispro.models.documents import Client, LineItem, Quote, QuoteStatus
from devispro.registre import ConflitEcriture, RegistreDevis
from devispro.taxes.calcul import (
    BornesTVA,
    aggregate,
    effective_rate,
    is_uniform_rate,
    total_ligne_affichage,
)

devis_app = typer.Typer(no_args_is_help=True)


def _bornes() -> BornesTVA:
    from devispro.cli.app import get_config

    config = get_config()
    return BornesTVA(minimum=config.taux_tva_min, maximum=config.taux_tva_max)


def _charger(registre: RegistreDevis, numero: str) -> Quote:
    devis = registre.obtenir(numero)
    if devis is None:
        echouer(f"Devis {numero} introuvable")
    return devis


def _enregistrer(registre: RegistreDevis, avant: Quote, apres: Quote) -> None:
    """Ecrit le devis modifie si le statut stocke n'a pas change entre-temps."""
    try:
        registre.remplacer(apres, statut_attendu=avant.status)
    except ConflitEcriture as e:
        echouer(f"Conflit d'ecriture: {e}")


@devis_app.command(name="creer")
def creer(
    client: str = typer.Option(..., "--client", "-c", prompt="Nom du client"),
    email: str = typer.Option("", "--email", "-e", help="Courriel du client"),
    adresse: str = typer.Option("", "--adresse", "-a", help="Adresse du client"),
    code_postal: str = typer.Option("", "--code-postal", help="Code postal"),
    ville: str = typer.Option("", "--ville", help="Ville"),
    siret: str = typer.Option("", "--siret", help="SIRET du client"),
) -> None:
    """Creer un devis brouillon pour un client (cree le client au besoin)."""
    clients = get_registre_clients()
    fiche = clients.chercher(client)
    if fiche is None:
        fiche = clients.ajouter(
            Client(
                name=client,
                email=email or None,
                address_line1=adresse or None,
                postal_code=code_postal or None,
                city=ville or None,
                siret=siret or None,
            )
        )
        console.print(f"  Client cree: {fiche.name}")

    registre = get_registre_devis()
    numero = registre.prochain_numero(datetime.date.today().year)
    registre.ajouter(Quote(number=numero, client_ref=fiche.id))
    console.print(f"[green]Devis {numero} cree (brouillon)[/green]")


@devis_app.command(name="ligne")
def ligne(
    numero: str = typer.Argument(help="Numero du devis"),
    description: str = typer.Option(..., "--description", "-d", prompt="Description"),
    quantite: str = typer.Option("1", "--quantite", "-q", help="Quantite"),
    prix: str = typer.Option(..., "--prix", "-p", prompt="Prix unitaire HT"),
    tva: str = typer.Option("20", "--tva", "-t", help="Taux de TVA en %"),
) -> None:
    """Ajouter une ligne a un devis modifiable (draft ou sent)."""
    item = LineItem(
        description=description,
        quantity=lire_decimal(quantite, "quantite"),
        unit_price_ht=lire_decimal(prix, "prix"),
        vat_rate_percent=lire_decimal(tva, "taux de TVA"),
    )

    registre = get_registre_devis()
    devis = _charger(registre, numero)
    try:
        modifie = ajouter_ligne(devis, item, _bornes())
    except ErreurMoteur as e:
        echouer(str(e))

    _enregistrer(registre, devis, modifie)
    totaux = aggregate(modifie.items)
    console.print(
        f"[green]Ligne ajoutee au devis {numero}[/green] "
        f"(total TTC: {formater_montant(totaux.total_ttc)})"
    )


@devis_app.command(name="lister")
def lister(
    statut: Optional[str] = typer.Option(
        None, "--statut", "-s", help="Filtrer par statut"
    ),
) -> None:
    """Lister les devis."""
    filtre = None
    if statut:
        try:
            filtre = QuoteStatus(statut.lower())
        except ValueError:
            echouer(
                f"Statut invalide: {statut}\n"
                f"Statuts valides: {', '.join(s.value for s in QuoteStatus)}"
            )

    devis_liste = get_registre_devis().lister(statut=filtre)
    if not devis_liste:
        console.print("[yellow]Aucun devis trouve.[/yellow]")
        return

    clients = get_registre_clients()
    tableau = Table(title="Devis", show_header=True)
    tableau.add_column("Numero", style="cyan")
    tableau.add_column("Client")
    tableau.add_column("Cree le")
    tableau.add_column("Total TTC", justify="right")
    tableau.add_column("Statut")

    for d in devis_liste:
        fiche = clients.obtenir(d.client_ref)
        tableau.add_row(
            d.number or d.id,
            fiche.name if fiche else d.client_ref,
            str(d.created_at.date()),
            formater_montant(aggregate(d.items).total_ttc),
            statut_markup(d.status),
        )

    console.print(tableau)


@devis_app.command(name="voir")
def voir(
    numero: str = typer.Argument(help="Numero du devis"),
) -> None:
    """Afficher les details d'un devis."""
    devis = _charger(get_registre_devis(), numero)
    fiche = get_registre_clients().obtenir(devis.client_ref)

    console.print(f"\n[bold]Devis {devis.number or devis.id}[/bold]")
    console.print(f"  Client: {fiche.name if fiche else devis.client_ref}")
    console.print(f"  Statut: {statut_markup(devis.status)}")
    if devis.sent_at:
        console.print(f"  Envoye le: {devis.sent_at:%d/%m/%Y}")
    if devis.signed_at:
        console.print(f"  Signe le: {devis.signed_at:%d/%m/%Y}")

    console.print("\n  [bold]Lignes:[/bold]")
    for item in devis.items:
        console.print(
            f"    {item.description}: {item.quantity} x "
            f"{formater_montant(item.unit_price_ht)} HT "
            f"(TVA {item.vat_rate_percent}%) = {formater_montant(total_ligne_affichage(item))}"
        )

    bornes = _bornes()
    totaux = aggregate(devis.items, bornes)
    libelle_taux = "" if is_uniform_rate(devis.items, bornes) else " (taux moyen, TVA mixte)"
    console.print(f"\n  Total HT: {formater_montant(totaux.subtotal_ht)}")
    console.print(
        f"  TVA {effective_rate(devis.items, bornes)}%{libelle_taux}: "
        f"{formater_montant(totaux.total_vat)}"
    )
    console.print(f"  [bold]Total TTC: {formater_montant(totaux.total_ttc)}[/bold]")

    if devis.deposit_amount is not None:
        etat = devis.deposit_status.value if devis.deposit_status else "pending"
        console.print(f"\n  Acompte: {formater_montant(devis.deposit_amount)} ({etat})")

    suivants = transitions_possibles(devis)
    if suivants:
        console.print(f"\n  Actions possibles: {', '.join(s.value for s in suivants)}")


def _changer_statut(numero: str, cible: QuoteStatus, message: str, **modifications) -> None:
    registre = get_registre_devis()
    devis = _charger(registre, numero)
    try:
        modifie = transition(devis.model_copy(update=modifications), cible)
    except ErreurMoteur as e:
        echouer(str(e))
    _enregistrer(registre, devis, modifie)
    console.print(f"[green]Devis {numero} {message}[/green]")


@devis_app.command(name="envoyer")
def envoyer(
    numero: str = typer.Argument(help="Numero du devis"),
) -> None:
    """Marquer un devis comme envoye au client."""
    registre = get_registre_devis()
    devis = _charger(registre, numero)
    try:
        modifie = envoyer_document(devis)
    except ErreurMoteur as e:
        echouer(str(e))
    _enregistrer(registre, devis, modifie)
    console.print(f"[green]Devis {numero} marque comme ENVOYE[/green]")


@devis_app.command(name="signer")
def signer(
    numero: str = typer.Argument(help="Numero du devis"),
    signature: str = typer.Option(
        ..., "--signature", "-s", help="Reference de la signature (URL ou identifiant)"
    ),
) -> None:
    """Enregistrer la signature du client."""
    _changer_statut(numero, QuoteStatus.SIGNED, "marque comme SIGNE", signature_ref=signature)


@devis_app.command(name="acompte")
def acompte(
    numero: str = typer.Argument(help="Numero du devis"),
    pourcentage: Optional[str] = typer.Option(
        None, "--pourcentage", "-p", help="Acompte en % du TTC"
    ),
    montant: Optional[str] = typer.Option(None, "--montant", "-m", help="Acompte en euros"),
) -> None:
    """Fixer l'acompte demande sur un devis."""
    registre = get_registre_devis()
    devis = _charger(registre, numero)
    try:
        modifie = demander_acompte(
            devis,
            pourcentage=lire_decimal(pourcentage, "pourcentage") if pourcentage else None,
            montant=lire_decimal(montant, "montant") if montant else None,
            bornes=_bornes(),
        )
    except ErreurMoteur as e:
        echouer(str(e))
    _enregistrer(registre, devis, modifie)
    console.print(
        f"[green]Acompte de {formater_montant(modifie.deposit_amount)} "
        f"demande sur le devis {numero}[/green]"
    )


@devis_app.command(name="payer-acompte")
def payer_acompte(
    numero: str = typer.Argument(help="Numero du devis"),
    methode: str = typer.Option(
        "virement", "--methode", "-m", help="virement, cash, cheque ou autre"
    ),
) -> None:
    """Marquer l'acompte comme encaisse."""
    registre = get_registre_devis()
    devis = _charger(registre, numero)
    try:
        modifie = enregistrer_acompte(devis, methode)
    except ErreurMoteur as e:
        echouer(str(e))
    _enregistrer(registre, devis, modifie)
    console.print(f"[green]Acompte du devis {numero} marque comme PAYE[/green]")


@devis_app.command(name="terminer")
def terminer(
    numero: str = typer.Argument(help="Numero du devis"),
) -> None:
    """Marquer un devis comme termine (chantier realise)."""
    _changer_statut(numero, QuoteStatus.COMPLETED, "marque comme TERMINE")


@devis_app.command(name="annuler")
def annuler(
    numero: str = typer.Argument(help="Numero du devis"),
) -> None:
    """Annuler un devis."""
    _changer_statut(numero, QuoteStatus.CANCELED, "ANNULE")


@devis_app.command(name="convertir")
def convertir(
    numero: str = typer.Argument(help="Numero du devis"),
) -> None:
    """Generer la facture d'un devis signe (une seule fois par devis)."""
    from devispro.cli.app import get_config

    config = get_config()
    devis = _charger(get_registre_devis(), numero)
    fiche = get_registre_clients().obtenir(devis.client_ref)
    if fiche is None:
        echouer(f"Client {devis.client_ref} introuvable")

    factures = get_registre_factures()
    try:
        facture = convert(
            devis,
            fiche,
            factures,
            delai_echeance_jours=config.delai_echeance_jours,
            numero=factures.prochain_numero(datetime.date.today().year),
            bornes=BornesTVA(minimum=config.taux_tva_min, maximum=config.taux_tva_max),
        )
        factures.ajouter(facture)
    except ErreurMoteur as e:
        echouer(str(e))

    console.print(f"[green]Facture {facture.number} creee depuis le devis {numero}[/green]")
    console.print(f"  Total TTC: {formater_montant(facture.total_ttc)}")
    if facture.paid_amount:
        console.print(f"  Deja regle (acompte): {formater_montant(facture.paid_amount)}")
    console.print(f"  Echeance: {facture.due_date}")
