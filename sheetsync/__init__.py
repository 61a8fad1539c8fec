"""Google Sheets -> PostgreSQL sync for shipment and invoice records."""

__version__ = "0.1.0"
