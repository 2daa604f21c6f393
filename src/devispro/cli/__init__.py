"""Interface en ligne de commande `dvp`."""
