"""Registres de devis et de factures avec persistance YAML.

Collaborateur de stockage du moteur: les fonctions du moteur ne lisent ni
n'ecrivent rien; l'appelant persiste les documents retournes ici.
`remplacer()` est une mise a jour conditionnelle (comparer-puis-ecrire sur
le statut et le compteur de relances attendus), ce qui rend transition,
conversion et relance atomiques pour un ecrivain unique.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Generic, Optional, TypeVar

import yaml

from devispro.erreurs import DuplicateConversion
from devispro.models.documents import Client, Invoice, Quote

logger = logging.getLogger(__name__)

D = TypeVar("D", Quote, Invoice)


class ConflitEcriture(ValueError):
    """Le document stocke a change depuis sa lecture."""


class _RegistreYaml(Generic[D]):
    """Liste de documents persistee dans un fichier YAML."""

    modele: type
    prefixe: str
    champ_statut: str
    chemin_defaut: Path

    def __init__(self, chemin: Path | None = None) -> None:
        self.chemin = chemin or self.chemin_defaut
        self._documents: list[D] = []
        self._charger()

    def _charger(self) -> None:
        """Charge les documents depuis le fichier YAML."""
        if self.chemin.exists():
            with open(self.chemin, encoding="utf-8") as f:
                donnees = yaml.safe_load(f)
            if donnees and isinstance(donnees, list):
                self._documents = [self.modele.model_validate(d) for d in donnees]

    def _sauvegarder(self) -> None:
        """Sauvegarde les documents dans le fichier YAML."""
        self.chemin.parent.mkdir(parents=True, exist_ok=True)
        donnees = [d.model_dump(mode="json") for d in self._documents]
        with open(self.chemin, "w", encoding="utf-8") as f:
            yaml.dump(donnees, f, default_flow_style=False, allow_unicode=True, sort_keys=False)

    def ajouter(self, doc: D) -> D:
        """Ajoute un document. Leve ValueError si l'id ou le numero existe deja."""
        self._charger()
        for existant in self._documents:
            if existant.id == doc.id:
                raise ValueError(f"Document {doc.id} existe deja dans le registre")
            if doc.number and existant.number == doc.number:
                raise ValueError(f"Document {doc.number} existe deja dans le registre")
        self._documents.append(doc)
        self._sauvegarder()
        return doc

    def obtenir(self, reference: str) -> Optional[D]:
        """Retourne un document par numero ou par id, ou None."""
        for doc in self._documents:
            if doc.number == reference or doc.id == reference:
                return doc
        return None

    def lister(self, statut: Enum | None = None) -> list[D]:
        """Liste les documents, optionnellement filtres par statut."""
        if statut is None:
            return list(self._documents)
        return [d for d in self._documents if getattr(d, self.champ_statut) == statut]

    def remplacer(
        self,
        doc: D,
        statut_attendu: Enum | None = None,
        relances_attendues: int | None = None,
    ) -> D:
        """Remplace la version stockee d'un document.

        Si `statut_attendu` ou `relances_attendues` est fourni, l'ecriture est
        refusee quand la valeur stockee differe (un autre ecrivain est passe
        entre-temps). Enregistrer une relance ne change pas le statut: seul le
        compteur de relances detecte deux envois concurrents.

        Raises:
            ValueError: document introuvable.
            ConflitEcriture: statut ou compteur de relances stocke different.
        """
        # Relire le fichier: un autre ecrivain a pu le modifier
        self._charger()
        for i, existant in enumerate(self._documents):
            if existant.id != doc.id:
                continue
            libelle = doc.number or doc.id
            actuel = getattr(existant, self.champ_statut)
            if statut_attendu is not None and actuel != statut_attendu:
                logger.warning(
                    "Ecriture refusee pour %s: statut %s, attendu %s",
                    libelle,
                    actuel.value,
                    statut_attendu.value,
                )
                raise ConflitEcriture(
                    f"{libelle}: statut stocke {actuel.value}, "
                    f"attendu {statut_attendu.value}"
                )
            if relances_attendues is not None and existant.reminder_count != relances_attendues:
                logger.warning(
                    "Ecriture refusee pour %s: %d relance(s) stockee(s), attendu %d",
                    libelle,
                    existant.reminder_count,
                    relances_attendues,
                )
                raise ConflitEcriture(
                    f"{libelle}: {existant.reminder_count} relance(s) stockee(s), "
                    f"attendu {relances_attendues}"
                )
            self._documents[i] = doc
            self._sauvegarder()
            return doc
        raise ValueError(f"Document {doc.number or doc.id} introuvable")

    def prochain_numero(self, annee: int) -> str:
        """Genere le prochain numero pour l'annee donnee.

        Format: PREFIXE-YYYY-NNN (zero-padded a 3 chiffres).
        """
        prefix = f"{self.prefixe}-{annee}-"
        numeros_existants = [
            int(d.number.replace(prefix, ""))
            for d in self._documents
            if d.number and d.number.startswith(prefix)
        ]
        prochain = max(numeros_existants, default=0) + 1
        return f"{prefix}{prochain:03d}"


class RegistreDevis(_RegistreYaml[Quote]):
    """Registre des devis (devis.yaml)."""

    modele = Quote
    prefixe = "DEV"
    champ_statut = "status"
    chemin_defaut = Path("data/devis.yaml")


class RegistreFactures(_RegistreYaml[Invoice]):
    """Registre des factures (factures.yaml), au plus une facture par devis."""

    modele = Invoice
    prefixe = "FAC"
    champ_statut = "payment_status"
    chemin_defaut = Path("data/factures.yaml")

    def existe_pour_devis(self, quote_id: str) -> bool:
        """Vrai si une facture reference deja ce devis."""
        return any(f.quote_ref == quote_id for f in self._documents)

    def ajouter(self, doc: Invoice) -> Invoice:
        """Ajoute une facture. Leve DuplicateConversion si le devis est deja facture."""
        self._charger()
        if doc.quote_ref is not None and self.existe_pour_devis(doc.quote_ref):
            logger.warning("Facture en double refusee pour le devis %s", doc.quote_ref)
            raise DuplicateConversion(f"Le devis {doc.quote_ref} est deja facture")
        return super().ajouter(doc)


class RegistreClients:
    """Registre des clients (clients.yaml). Un client est partage par plusieurs documents."""

    def __init__(self, chemin: Path | None = None) -> None:
        self.chemin = chemin or Path("data/clients.yaml")
        self._clients: list[Client] = []
        if self.chemin.exists():
            with open(self.chemin, encoding="utf-8") as f:
                donnees = yaml.safe_load(f)
            if donnees and isinstance(donnees, list):
                self._clients = [Client.model_validate(d) for d in donnees]

    def _sauvegarder(self) -> None:
        self.chemin.parent.mkdir(parents=True, exist_ok=True)
        donnees = [c.model_dump(mode="json") for c in self._clients]
        with open(self.chemin, "w", encoding="utf-8") as f:
            yaml.dump(donnees, f, default_flow_style=False, allow_unicode=True, sort_keys=False)

    def ajouter(self, client: Client) -> Client:
        if self.obtenir(client.id) is not None:
            raise ValueError(f"Client {client.id} existe deja")
        self._clients.append(client)
        self._sauvegarder()
        return client

    def obtenir(self, client_id: str) -> Optional[Client]:
        return next((c for c in self._clients if c.id == client_id), None)

    def chercher(self, nom: str) -> Optional[Client]:
        """Premier client portant ce nom (insensible a la casse)."""
        nom = nom.strip().lower()
        return next((c for c in self._clients if c.name.strip().lower() == nom), None)
