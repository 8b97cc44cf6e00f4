"""Client library for the tastytrade order-management REST API."""

__version__ = "0.1.0"
