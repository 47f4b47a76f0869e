"""Ingestion layer.

This package receives device state reports, records their GPS fixes per
cell and seeds the cell geolocation cache.  It also decides when a
report should trigger a cell resolution.
"""

__all__: list[str] = []
