"""Configuration du moteur (delais de relance, plafond, echeance, bornes TVA).

La configuration est lue depuis un fichier YAML. Un fichier absent est cree
avec les valeurs par defaut.

Variables d'environnement (un fichier .env est aussi lu):
    DEVISPRO_DATA   -- repertoire des donnees (default: data)
    DEVISPRO_CONFIG -- chemin du fichier de configuration
                       (default: $DEVISPRO_DATA/devispro.yaml)
"""

from __future__ import annotations

import logging
import os
from decimal import Decimal
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

logger = logging.getLogger(__name__)

load_dotenv()


class ConfigMoteur(BaseModel):
    """Parametres consommes par le moteur, jamais codes en dur ailleurs."""

    intervalle_relance_devis: int = Field(default=7, gt=0)
    intervalle_relance_facture: int = Field(default=10, gt=0)
    max_relances: int = Field(default=3, ge=0)
    delai_echeance_jours: int = Field(default=30, ge=0)
    taux_tva_min: Decimal = Decimal("0")
    taux_tva_max: Decimal = Decimal("100")
    relances_actives: bool = True
    message_relance: Optional[str] = None

    @model_validator(mode="after")
    def _verifier_bornes(self) -> "ConfigMoteur":
        if not Decimal("0") <= self.taux_tva_min <= self.taux_tva_max <= Decimal("100"):
            raise ValueError("Les bornes de TVA doivent respecter 0 <= min <= max <= 100")
        return self


CONFIG_DEFAUT = ConfigMoteur()


def repertoire_donnees() -> Path:
    """Retourne le repertoire des donnees (devis, factures, configuration)."""
    return Path(os.environ.get("DEVISPRO_DATA", "data"))


def chemin_config(repertoire: Path | None = None) -> Path:
    """Retourne le chemin du fichier de configuration."""
    chemin = os.environ.get("DEVISPRO_CONFIG")
    if chemin:
        return Path(chemin)
    return (repertoire or repertoire_donnees()) / "devispro.yaml"


def charger_config(chemin: Path | None = None) -> ConfigMoteur:
    """Charge la configuration depuis le YAML, en le creant au besoin."""
    chemin = chemin or chemin_config()
    if not chemin.exists():
        chemin.parent.mkdir(parents=True, exist_ok=True)
        with open(chemin, "w", encoding="utf-8") as f:
            yaml.dump(
                CONFIG_DEFAUT.model_dump(mode="json"),
                f,
                default_flow_style=False,
                allow_unicode=True,
                sort_keys=False,
            )
        logger.info("Fichier de configuration cree: %s", chemin)
        return CONFIG_DEFAUT

    with open(chemin, encoding="utf-8") as f:
        donnees = yaml.safe_load(f)
    return ConfigMoteur.model_validate(donnees or {})
