"""Hotel and restaurant back office: inventory stock ledger service."""

__version__ = "1.0.0"
