"""Phylogenetic building blocks: trees, neighbor joining, Robinson-Foulds distances, sparse containers, normalizing flows and migration models."""

__version__ = "0.1.0"