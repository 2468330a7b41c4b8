"""
TxValidator - per-epoch transaction validation over a UTXO pool.

Conceptual Background:
---------------------
The validator owns a UTXO pool and processes one batch of candidate
transactions per epoch.

Validation Rules:
----------------
A transaction is valid against the current pool iff:
1. Every input references a UTXO in the pool
2. Every input's signature verifies with the referenced output's owner key
3. No UTXO is referenced by more than one input of the transaction
4. Every output value is non-negative (and fits the 8-byte output encoding)
5. sum(referenced values) >= sum(output values)

Epoch Processing:
----------------
Candidates are examined once each, in the order supplied. Each one is
validated against the pool as already updated by the candidates accepted
before it, so a second spend of an output consumed earlier in the same
epoch fails rule 1. Which of two conflicting transactions wins is decided
by position alone.

Invalid transactions are rejected silently (logged at DEBUG); only
contract violations such as unfinalized candidates raise.
"""

from typing import Callable, Iterable, List, Set, Tuple

from txvalidator.core.state.pool import UTXOPool
from txvalidator.core.state.transaction import Transaction
from txvalidator.core.state.utxo import UTXO, MAX_VALUE
from txvalidator.crypto import bytes_to_hex, verify_signature
from txvalidator.utils.logger import get_logger

logger = get_logger("validator")

# verify(public_key, message, signature) -> bool
SignatureVerifier = Callable[[bytes, bytes, bytes], bool]


# =============================================================================
# Pool Updates
# =============================================================================


def apply_transaction(pool: UTXOPool, tx: Transaction) -> None:
    """
    Apply an accepted transaction to ``pool``.

    Removes every UTXO the inputs reference, then adds each output under
    ``UTXO(tx.tx_hash, position)``. No validation happens here.

    Raises:
        ValueError: If the transaction is not finalized
    """
    if tx.tx_hash is None:
        raise ValueError("Cannot apply an unfinalized transaction")

    for inp in tx.inputs:
        pool.remove(inp.utxo)
    for position, out in enumerate(tx.outputs):
        pool.add(UTXO(tx.tx_hash, position), out)


def pool_from_transactions(transactions: Iterable[Transaction]) -> UTXOPool:
    """
    Build a pool holding every output of ``transactions``.

    Inputs are ignored; intended for seeding from coinbase transactions.
    """
    pool = UTXOPool()
    for tx in transactions:
        if tx.tx_hash is None:
            raise ValueError("Cannot seed a pool from an unfinalized transaction")
        for position, out in enumerate(tx.outputs):
            pool.add(UTXO(tx.tx_hash, position), out)
    return pool


# =============================================================================
# Validator
# =============================================================================


class TxValidator:
    """
    Validates transactions and applies epochs to an owned UTXO pool.

    Attributes:
        epoch: Number of epochs processed so far
    """

    def __init__(
        self,
        utxo_pool: UTXOPool,
        verifier: SignatureVerifier = verify_signature,
    ):
        """
        Initialize the validator.

        Args:
            utxo_pool: Initial pool. It is copied; the caller's pool is
                never mutated.
            verifier: Signature primitive, ``verify(public_key, message, signature)``
        """
        self._pool = utxo_pool.copy()
        self._verify = verifier
        self.epoch = 0

    @property
    def pool(self) -> UTXOPool:
        """Copy of the current pool."""
        return self._pool.copy()

    # =========================================================================
    # Single Transaction Validation
    # =========================================================================

    def validate_transaction(self, tx: Transaction) -> Tuple[bool, str]:
        """
        Validate a transaction against the current pool.

        Args:
            tx: Transaction to validate

        Returns:
            (is_valid, error_message)
        """
        return self._validate_against(self._pool, tx)

    def is_valid(self, tx: Transaction) -> bool:
        """True if ``tx`` passes every validation rule against the current pool."""
        is_valid, _ = self.validate_transaction(tx)
        return is_valid

    def _validate_against(self, pool: UTXOPool, tx: Transaction) -> Tuple[bool, str]:
        # Output rules first: payloads for the signature check encode every output
        for j, out in enumerate(tx.outputs):
            if out.value < 0:
                return False, f"Output {j}: Negative value {out.value}"
            if out.value > MAX_VALUE:
                return False, f"Output {j}: Value exceeds maximum: {out.value} > {MAX_VALUE}"

        claimed: Set[UTXO] = set()
        input_sum = 0

        for i, inp in enumerate(tx.inputs):
            utxo = inp.utxo
            spent = pool.get_output(utxo)
            if spent is None:
                return False, f"Input {i}: UTXO not found"

            if utxo in claimed:
                return False, f"Input {i}: UTXO claimed more than once"
            claimed.add(utxo)

            if not self._verify(spent.address, tx.get_raw_data_to_sign(i), inp.signature):
                return False, f"Input {i}: Invalid signature"

            input_sum += spent.value

        output_sum = tx.total_output_value()
        if input_sum < output_sum:
            return False, f"Balance: inputs {input_sum} < outputs {output_sum}"

        return True, ""

    # =========================================================================
    # Epoch Processing
    # =========================================================================

    def process_epoch(self, candidates: Iterable[Transaction]) -> List[Transaction]:
        """
        Process one epoch of candidate transactions.

        Each candidate is validated against the pool as updated by the
        candidates accepted before it; valid ones are applied immediately.

        Args:
            candidates: Transactions in processing order

        Returns:
            Accepted transactions, in processing order

        Raises:
            ValueError: If any candidate is not finalized or references an
                output index that cannot be encoded (checked before the pool
                is touched)
        """
        candidates = list(candidates)
        for position, tx in enumerate(candidates):
            if tx.tx_hash is None:
                raise ValueError(f"Candidate {position} is not finalized")
            for inp in tx.inputs:
                # raises ValueError on an unencodable reference
                UTXO(inp.prev_tx_hash, inp.output_index)

        accepted: List[Transaction] = []
        for position, tx in enumerate(candidates):
            is_valid, error = self._validate_against(self._pool, tx)
            if not is_valid:
                logger.debug(f"Rejected candidate {position} ({bytes_to_hex(tx.tx_hash)[:10]}...): {error}")
                continue

            apply_transaction(self._pool, tx)
            accepted.append(tx)
            logger.debug(f"Accepted tx {bytes_to_hex(tx.tx_hash)[:10]}... ({len(tx.inputs)} in, {len(tx.outputs)} out)")

        self.epoch += 1
        logger.info(
            f"Epoch {self.epoch}: accepted {len(accepted)}/{len(candidates)} txs, "
            f"pool has {len(self._pool)} UTXOs"
        )
        return accepted

    # =========================================================================
    # Utility
    # =========================================================================

    def __repr__(self) -> str:
        return f"TxValidator(epoch={self.epoch}, utxos={len(self._pool)})"

    def stats(self) -> dict:
        """Get validator statistics."""
        return {
            "epoch": self.epoch,
            "utxo_count": len(self._pool),
            "total_value": self._pool.total_value(),
        }
