"""UTXO pool and transaction model"""
from txvalidator.core.state.utxo import UTXO, TxOutput
from txvalidator.core.state.pool import UTXOPool
from txvalidator.core.state.transaction import (
    Transaction,
    TxInput,
    create_transfer,
    create_coinbase,
)

__all__ = [
    "UTXO",
    "TxOutput",
    "UTXOPool",
    "Transaction",
    "TxInput",
    "create_transfer",
    "create_coinbase",
]
