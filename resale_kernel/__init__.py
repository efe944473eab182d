"""
Resale Kernel - order, invoice and khata ledger persistence

A seller-tenanted reconciliation core with:
- Profit sealed at order creation
- Invoices aggregated from explicitly linked orders
- Statement matching against live order state
- Chronological khata balances rebuilt on every read
"""

__version__ = "0.1.0"
