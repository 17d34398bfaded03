"""Persistence layer: declarative base, column types, engine and listeners."""
