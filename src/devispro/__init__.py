"""DevisPro - moteur du cycle de vie des devis et factures pour artisans."""

__version__ = "0.1.0"
