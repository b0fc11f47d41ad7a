"""Concrete adapters for the interfaces in :mod:`lectern.interfaces`."""
