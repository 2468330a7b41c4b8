"""
txvalidator

A single-epoch transaction validator for the UTXO ledger model:
- UTXO pool bookkeeping
- Per-transaction signature and balance validation
- Epoch batch processing with order-based double-spend resolution
"""

__version__ = "0.1.0"
