"""warehousetracker: shipment records in, derived views and reports out."""

__version__ = "0.1.0"
