"""
UTXO - Unspent Transaction Output identity and output data.

Conceptual Background:
---------------------
A UTXO represents a discrete unit of value that can be spent exactly once.

State is the set of unspent outputs rather than a mapping of balances:

1. Each output is named by the transaction that created it and its position
   among that transaction's outputs: ``(tx_hash, index)``
2. Spending removes the name from the pool, so a second spend of the same
   name fails the membership check
3. Outputs never change in place, they are only created and consumed

Value Encoding:
--------------
Values are integers in minor units (fixed point). An output may be built with
a negative value so that validation, not construction, rejects it.
"""

from dataclasses import dataclass

from txvalidator.crypto import bytes_to_hex


# Outputs encode value in 8 signed bytes, inputs encode the spent index in 4
MAX_VALUE = 2**63 - 1
MIN_VALUE = -(2**63)
MAX_OUTPUT_INDEX = 2**32 - 1


# =============================================================================
# Output Identity
# =============================================================================


@dataclass(frozen=True, order=True)
class UTXO:
    """
    Identity of an unspent output.

    Ordered by transaction hash bytes, then output index, so it can be used
    directly as a dict key and sorted deterministically. The index must fit
    the 4-byte encoding used in signable payloads.

    Attributes:
        tx_hash: Hash of the transaction that created the output
        index: Position of the output within that transaction
    """
    tx_hash: bytes
    index: int

    def __post_init__(self):
        if not isinstance(self.tx_hash, bytes):
            raise TypeError(f"tx_hash must be bytes, got {type(self.tx_hash).__name__}")
        if not 0 <= self.index <= MAX_OUTPUT_INDEX:
            raise ValueError(f"index must be 0-{MAX_OUTPUT_INDEX}, got {self.index}")

    def __repr__(self) -> str:
        return f"UTXO(tx={bytes_to_hex(self.tx_hash)[:10]}..., idx={self.index})"


# =============================================================================
# Output Data
# =============================================================================


@dataclass(frozen=True)
class TxOutput:
    """
    Value and owner of an output.

    Attributes:
        value: Amount in minor units
        address: Owner's 64-byte public key
    """
    value: int
    address: bytes

    def to_bytes(self) -> bytes:
        """
        Serialize output.

        Format: value(8, big-endian, signed) || address
        """
        return self.value.to_bytes(8, byteorder="big", signed=True) + self.address

    def __repr__(self) -> str:
        return f"TxOutput(value={self.value}, owner={bytes_to_hex(self.address)[:10]}...)"
