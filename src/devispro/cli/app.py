"""Application CLI principale DevisPro."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

import devispro
from devispro.config import ConfigMoteur, charger_config, chemin_config, repertoire_donnees

app = typer.Typer(
    name="dvp",
    help="DevisPro - Devis, factures, acomptes et relances pour artisans",
    no_args_is_help=True,
)

console = Console()

# Options globales stockees via le callback
_data_dir: Path = repertoire_donnees()


def get_data_dir() -> Path:
    """Retourne le repertoire des donnees (devis.yaml, factures.yaml, ...)."""
    return _data_dir


def get_config() -> ConfigMoteur:
    """Charge la configuration du moteur depuis le repertoire des donnees."""
    return charger_config(chemin_config(get_data_dir()))


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"DevisPro version {devispro.__version__}")
        raise typer.Exit()


@app.callback()
def main(
    donnees: Optional[str] = typer.Option(
        None,
        "--donnees",
        "-d",
        help="Repertoire des donnees (defaut: $DEVISPRO_DATA ou ./data)",
    ),
    verbose: bool = typer.Option(
        False, "--verbose", help="Afficher le journal des operations"
    ),
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Afficher la version de DevisPro",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """DevisPro - cycle de vie des devis et factures."""
    global _data_dir
    _data_dir = Path(donnees) if donnees else repertoire_donnees()
    if verbose:
        logging.basicConfig(
            level=logging.INFO, format="%(levelname)s %(name)s: %(message)s"
        )


# Import et enregistrement des sous-commandes
from devispro.cli.devis import devis_app  # noqa: E402
from devispro.cli.facture import facture_app  # noqa: E402
from devispro.cli.relances import relances_app  # noqa: E402

app.add_typer(devis_app, name="devis", help="Gestion des devis")
app.add_typer(facture_app, name="facture", help="Gestion des factures")
app.add_typer(relances_app, name="relances", help="Relances des devis et factures")
