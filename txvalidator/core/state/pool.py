"""
UTXO Pool - the set of currently spendable outputs.

The pool is a plain mapping ``UTXO -> TxOutput`` with no policy: it never
validates what it stores. Callers (the validator) are responsible for only
inserting outputs of accepted transactions.
"""

from typing import Dict, Iterator, List, Optional

from txvalidator.core.state.utxo import UTXO, TxOutput


class UTXOPool:
    """
    Mapping from output identity to output data.

    Attributes:
        _outputs: Mapping of UTXO to TxOutput
    """

    def __init__(self, other: Optional["UTXOPool"] = None):
        """
        Create an empty pool, or a copy of ``other``.

        Args:
            other: Pool to copy entries from
        """
        self._outputs: Dict[UTXO, TxOutput] = {}
        if other is not None:
            self._outputs.update(other._outputs)

    # =========================================================================
    # Core Operations
    # =========================================================================

    def contains(self, utxo: UTXO) -> bool:
        """Check whether ``utxo`` is spendable."""
        return utxo in self._outputs

    def add(self, utxo: UTXO, output: TxOutput) -> None:
        """Insert or overwrite the output stored for ``utxo``."""
        self._outputs[utxo] = output

    def remove(self, utxo: UTXO) -> None:
        """Remove ``utxo`` if present. Removing an absent entry is a no-op."""
        self._outputs.pop(utxo, None)

    def copy(self) -> "UTXOPool":
        """
        Return an independent copy.

        Keys and values are immutable, so copying the mapping is a deep copy.
        """
        return UTXOPool(self)

    # =========================================================================
    # Read Access
    # =========================================================================

    def get_output(self, utxo: UTXO) -> Optional[TxOutput]:
        """Get the output stored for ``utxo``, or None."""
        return self._outputs.get(utxo)

    def all_utxos(self) -> List[UTXO]:
        """All spendable identities, sorted by (tx_hash, index)."""
        return sorted(self._outputs)

    def get_balance(self, address: bytes) -> int:
        """Total value owned by ``address``."""
        return sum(out.value for out in self._outputs.values() if out.address == address)

    def total_value(self) -> int:
        """Total value held in the pool."""
        return sum(out.value for out in self._outputs.values())

    def __contains__(self, utxo: object) -> bool:
        return utxo in self._outputs

    def __len__(self) -> int:
        return len(self._outputs)

    def __iter__(self) -> Iterator[UTXO]:
        return iter(self._outputs)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, UTXOPool):
            return NotImplemented
        return self._outputs == other._outputs

    def __repr__(self) -> str:
        return f"UTXOPool(utxos={len(self._outputs)}, total_value={self.total_value()})"
