"""Kailash workflow nodes."""

from .upsert_node import PostgresUpsertNode

__all__ = ["PostgresUpsertNode"]
