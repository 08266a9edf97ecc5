"""Persistence layer: ORM models, async session factory and the consumption store."""
