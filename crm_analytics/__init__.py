"""
Storefront CRM Analytics

Reporting core of the storefront back-office console: dashboard aggregation,
report grids and exports, and change-driven recomputation.
"""

__version__ = "1.0.0"
