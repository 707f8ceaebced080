"""Concrete adapters implementing the interfaces in ``stellar.interfaces``."""
