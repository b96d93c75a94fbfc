"""Storefront backend: users, orders and the payment transaction lifecycle."""

__version__ = "0.1.0"
