"""
Transaction - State transition over the UTXO pool.

Conceptual Background:
---------------------
A Transaction consumes inputs (existing UTXOs) and creates outputs (new UTXOs).

Value is never created:
    sum(referenced outputs.value) >= sum(outputs.value)
the difference is an implicit fee.

Each input references a specific UTXO and provides:
- The UTXO identifier (prev_tx_hash + output_index)
- A signature by the owner of that UTXO over the input's signable payload

Signable Payload:
----------------
The payload for input ``i`` binds the spent output to every output of the
transaction, so a signature cannot be replayed to redirect funds:

    prev_tx_hash || output_index(4) || for each output: value(8) || address

Transaction Hash:
----------------
Once all inputs are signed, ``finalize()`` sets

    tx_hash = SHA256(for each input: prev_tx_hash || output_index(4) || signature
                     || for each output: value(8) || address)

New outputs are named ``UTXO(tx_hash, position)``.
"""

from dataclasses import dataclass, field, replace
from typing import List, Optional, Sequence, Tuple, Union

from txvalidator.crypto import sha256, sign_message, bytes_to_hex
from txvalidator.core.state.utxo import UTXO, TxOutput


# =============================================================================
# Input Reference
# =============================================================================


@dataclass(frozen=True)
class TxInput:
    """
    A transaction input - reference to a UTXO being spent.

    Attributes:
        prev_tx_hash: Transaction that created the UTXO
        output_index: Index in that transaction's outputs
        signature: Signature authorizing the spend (empty until signed)
    """
    prev_tx_hash: bytes
    output_index: int
    signature: bytes = b""

    @property
    def utxo(self) -> UTXO:
        """Get the UTXO identifier this input references."""
        return UTXO(self.prev_tx_hash, self.output_index)

    def reference_bytes(self) -> bytes:
        return self.prev_tx_hash + self.output_index.to_bytes(4, byteorder="big")


# =============================================================================
# Transaction
# =============================================================================


@dataclass
class Transaction:
    """
    An ordered list of inputs and outputs plus its content hash.

    Attributes:
        inputs: List of TxInputs being spent
        outputs: List of TxOutputs being created
        tx_hash: Hash of the finalized transaction (None until finalize())
    """
    inputs: List[TxInput] = field(default_factory=list)
    outputs: List[TxOutput] = field(default_factory=list)
    tx_hash: Optional[bytes] = None

    # =========================================================================
    # Building
    # =========================================================================

    def add_input(self, prev_tx_hash: bytes, output_index: int) -> None:
        """Append an unsigned input spending ``(prev_tx_hash, output_index)``."""
        self.inputs.append(TxInput(prev_tx_hash, output_index))

    def add_output(self, value: int, address: bytes) -> None:
        """Append an output paying ``value`` to ``address``."""
        self.outputs.append(TxOutput(value, address))

    def remove_input(self, target: Union[int, UTXO]) -> None:
        """
        Remove an input by position or by the UTXO it references.

        Raises:
            IndexError: If the position is out of range
            ValueError: If no input references the given UTXO
        """
        if isinstance(target, UTXO):
            for i, inp in enumerate(self.inputs):
                if inp.utxo == target:
                    del self.inputs[i]
                    return
            raise ValueError(f"No input spends {target!r}")
        self._check_input_index(target)
        del self.inputs[target]

    def add_signature(self, signature: bytes, input_index: int) -> None:
        """Attach ``signature`` to the input at ``input_index``."""
        self._check_input_index(input_index)
        self.inputs[input_index] = replace(self.inputs[input_index], signature=signature)

    def sign_input(self, input_index: int, private_key: bytes) -> None:
        """
        Sign a specific input.

        Args:
            input_index: Which input to sign
            private_key: Private key of the input's UTXO owner
        """
        payload = self.get_raw_data_to_sign(input_index)
        self.add_signature(sign_message(private_key, payload), input_index)

    def _check_input_index(self, input_index: int) -> None:
        if not 0 <= input_index < len(self.inputs):
            raise IndexError(f"Input index {input_index} out of range")

    # =========================================================================
    # Serialization and Hashing
    # =========================================================================

    def _outputs_bytes(self) -> bytes:
        return b"".join(out.to_bytes() for out in self.outputs)

    def get_raw_data_to_sign(self, input_index: int) -> bytes:
        """
        Signable payload for the input at ``input_index``.

        Format: prev_tx_hash || output_index(4) || outputs
        """
        self._check_input_index(input_index)
        return self.inputs[input_index].reference_bytes() + self._outputs_bytes()

    def get_raw_tx(self) -> bytes:
        """
        Full byte representation used for the transaction hash.

        Format: for each input: prev_tx_hash || output_index(4) || signature,
        then outputs.
        """
        parts = []
        for inp in self.inputs:
            parts.append(inp.reference_bytes())
            parts.append(inp.signature)
        parts.append(self._outputs_bytes())
        return b"".join(parts)

    def compute_tx_hash(self) -> bytes:
        """Compute the transaction hash."""
        return sha256(self.get_raw_tx())

    def finalize(self) -> None:
        """Compute and set the transaction hash."""
        self.tx_hash = self.compute_tx_hash()

    # =========================================================================
    # Utility
    # =========================================================================

    def output_utxo(self, position: int) -> UTXO:
        """Identity the output at ``position`` receives once accepted."""
        if self.tx_hash is None:
            raise ValueError("Transaction is not finalized")
        return UTXO(self.tx_hash, position)

    def total_output_value(self) -> int:
        """Sum of all output values."""
        return sum(out.value for out in self.outputs)

    def __repr__(self) -> str:
        tx_id = bytes_to_hex(self.tx_hash)[:10] + "..." if self.tx_hash else "unfinalized"
        return f"Transaction(id={tx_id}, inputs={len(self.inputs)}, outputs={len(self.outputs)})"


# =============================================================================
# Factory Functions
# =============================================================================


def create_transfer(
    inputs: Sequence[Tuple[UTXO, bytes]],  # List of (utxo, private_key)
    recipients: Sequence[Tuple[bytes, int]],  # List of (address, value)
) -> Transaction:
    """
    Create a signed, finalized transfer transaction.

    Args:
        inputs: List of (UTXO, private_key) tuples
        recipients: List of (address, value) tuples

    Returns:
        Signed Transaction

    Note: No balance check happens here; the validator decides validity.
    """
    tx = Transaction()
    for utxo, _ in inputs:
        tx.add_input(utxo.tx_hash, utxo.index)
    for address, value in recipients:
        tx.add_output(value, address)

    # All outputs must be in place before signing
    for i, (_, private_key) in enumerate(inputs):
        tx.sign_input(i, private_key)

    tx.finalize()
    return tx


def create_coinbase(recipients: Sequence[Tuple[bytes, int]]) -> Transaction:
    """
    Create an input-less transaction that only creates outputs.

    Used to seed an initial pool. As an epoch candidate it creates value
    without spending any, so the validator rejects it unless every output
    is zero.

    Args:
        recipients: List of (address, value) tuples
    """
    tx = Transaction()
    for address, value in recipients:
        tx.add_output(value, address)
    tx.finalize()
    return tx
