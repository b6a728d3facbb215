"""Inventory stock-alarm service.

Maps arbitrary spreadsheet rows onto inventory roles, tracks confirmed
baselines with a per-row alarm flag and summarizes shortages.
"""

__version__ = "0.1.0"
