"""
Unit tests for transaction validation and epoch processing.

Tests cover:
1. Each validation rule in isolation
2. Validation has no side effects
3. Epoch processing against the evolving pool
4. Order-dependent double-spend resolution
5. Pool bookkeeping after an epoch
"""

import pytest

from txvalidator.crypto import generate_keypair
from txvalidator.core.state import (
    UTXO,
    TxOutput,
    UTXOPool,
    Transaction,
    create_transfer,
    create_coinbase,
)
from txvalidator.core.validator import (
    TxValidator,
    apply_transaction,
    pool_from_transactions,
)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(scope="module")
def alice():
    return generate_keypair()


@pytest.fixture(scope="module")
def bob():
    return generate_keypair()


@pytest.fixture(scope="module")
def carol():
    return generate_keypair()


@pytest.fixture
def genesis(alice):
    """Alice owns two outputs: 10 at index 0 and 4 at index 1."""
    return create_coinbase([(alice.public_key, 10), (alice.public_key, 4)])


@pytest.fixture
def pool(genesis):
    return pool_from_transactions([genesis])


@pytest.fixture
def validator(pool):
    return TxValidator(pool)


def _spend(utxo, keypair, recipients):
    return create_transfer(inputs=[(utxo, keypair.private_key)], recipients=recipients)


# =============================================================================
# Single Transaction Validation
# =============================================================================


class TestValidation:
    """Tests for the five validation rules."""

    def test_valid_transfer(self, validator, genesis, alice, bob, carol):
        tx = _spend(genesis.output_utxo(0), alice, [(bob.public_key, 7), (carol.public_key, 3)])
        assert validator.is_valid(tx)
        assert validator.validate_transaction(tx) == (True, "")

    def test_fee_is_allowed(self, validator, genesis, alice, bob):
        tx = _spend(genesis.output_utxo(0), alice, [(bob.public_key, 6)])
        assert validator.is_valid(tx)

    def test_multiple_inputs(self, validator, genesis, alice, bob):
        tx = create_transfer(
            inputs=[(genesis.output_utxo(0), alice.private_key), (genesis.output_utxo(1), alice.private_key)],
            recipients=[(bob.public_key, 14)],
        )
        assert validator.is_valid(tx)

    def test_missing_utxo_rejected(self, validator, alice, bob):
        tx = _spend(UTXO(b"\x09" * 32, 0), alice, [(bob.public_key, 1)])
        is_valid, error = validator.validate_transaction(tx)
        assert not is_valid
        assert "not found" in error

    def test_all_inputs_missing_rejected(self, validator, genesis, alice, bob):
        tx = create_transfer(
            inputs=[(genesis.output_utxo(5), alice.private_key), (UTXO(b"\x09" * 32, 1), alice.private_key)],
            recipients=[(bob.public_key, 0)],
        )
        assert not validator.is_valid(tx)

    def test_wrong_signer_rejected(self, validator, genesis, bob):
        """Bob cannot spend Alice's output."""
        tx = _spend(genesis.output_utxo(0), bob, [(bob.public_key, 10)])
        is_valid, error = validator.validate_transaction(tx)
        assert not is_valid
        assert "signature" in error

    def test_unsigned_input_rejected(self, validator, genesis, bob):
        tx = Transaction()
        tx.add_input(genesis.tx_hash, 0)
        tx.add_output(10, bob.public_key)
        tx.finalize()
        assert not validator.is_valid(tx)

    def test_signature_bound_to_outputs(self, validator, genesis, alice, bob, carol):
        """Redirecting outputs after signing invalidates the signature."""
        tx = _spend(genesis.output_utxo(0), alice, [(bob.public_key, 10)])
        tx.outputs[0] = TxOutput(10, carol.public_key)
        tx.finalize()
        assert not validator.is_valid(tx)

    def test_key_comes_from_referenced_output(self, genesis, alice, bob):
        """The verifier receives the spent output's owner, not an output of tx."""
        seen = []

        def recording_verifier(public_key, message, signature):
            seen.append(public_key)
            return True

        validator = TxValidator(pool_from_transactions([genesis]), verifier=recording_verifier)
        tx = _spend(genesis.output_utxo(0), alice, [(bob.public_key, 10)])
        assert validator.is_valid(tx)
        assert seen == [alice.public_key]

    def test_self_double_spend_rejected(self, validator, genesis, alice, bob):
        """The same UTXO twice in one transaction is invalid even with good signatures."""
        utxo = genesis.output_utxo(0)
        tx = create_transfer(
            inputs=[(utxo, alice.private_key), (utxo, alice.private_key)],
            recipients=[(bob.public_key, 10)],
        )
        is_valid, error = validator.validate_transaction(tx)
        assert not is_valid
        assert "more than once" in error

    def test_self_double_spend_rejected_regardless_of_signature(self, genesis, bob):
        validator = TxValidator(
            pool_from_transactions([genesis]),
            verifier=lambda public_key, message, signature: True,
        )
        tx = Transaction()
        tx.add_input(genesis.tx_hash, 1)
        tx.add_input(genesis.tx_hash, 0)
        tx.add_input(genesis.tx_hash, 1)
        tx.add_output(1, bob.public_key)
        tx.finalize()
        assert not validator.is_valid(tx)

    def test_negative_output_rejected(self, validator, genesis, alice, bob, carol):
        """Negative outputs are invalid even when the sums balance."""
        tx = _spend(genesis.output_utxo(0), alice, [(bob.public_key, 12), (carol.public_key, -2)])
        is_valid, error = validator.validate_transaction(tx)
        assert not is_valid
        assert "Negative" in error

    def test_zero_output_allowed(self, validator, genesis, alice, bob):
        tx = _spend(genesis.output_utxo(0), alice, [(bob.public_key, 0)])
        assert validator.is_valid(tx)

    def test_overspend_rejected(self, validator, genesis, alice, bob, carol):
        tx = _spend(genesis.output_utxo(0), alice, [(bob.public_key, 8), (carol.public_key, 3)])
        is_valid, error = validator.validate_transaction(tx)
        assert not is_valid
        assert "Balance" in error

    def test_coinbase_candidate_rejected(self, validator, bob):
        assert not validator.is_valid(create_coinbase([(bob.public_key, 1)]))

    def test_validation_has_no_side_effects(self, validator, genesis, alice, bob):
        before = validator.pool
        good = _spend(genesis.output_utxo(0), alice, [(bob.public_key, 10)])
        bad = _spend(genesis.output_utxo(0), alice, [(bob.public_key, 11)])

        assert [validator.is_valid(good) for _ in range(2)] == [True, True]
        assert [validator.is_valid(bad) for _ in range(2)] == [False, False]
        assert validator.pool == before
        assert validator.epoch == 0


# =============================================================================
# Construction and Ownership
# =============================================================================


class TestOwnership:
    """Tests for pool ownership and isolation."""

    def test_caller_pool_never_mutated(self, pool, genesis, alice, bob):
        snapshot = pool.copy()
        validator = TxValidator(pool)
        validator.process_epoch([_spend(genesis.output_utxo(0), alice, [(bob.public_key, 10)])])

        assert pool == snapshot
        assert validator.pool != snapshot

    def test_pool_accessor_returns_copy(self, validator, genesis):
        view = validator.pool
        view.remove(genesis.output_utxo(0))
        assert validator.pool.contains(genesis.output_utxo(0))


# =============================================================================
# Epoch Processing
# =============================================================================


class TestEpoch:
    """Tests for batch processing."""

    def test_concrete_scenario_accepts(self, alice, bob, carol):
        """Spending 10 into 7 + 3 leaves exactly the two new outputs."""
        u1 = UTXO(b"\x11" * 32, 0)
        pool = UTXOPool()
        pool.add(u1, TxOutput(10, alice.public_key))
        validator = TxValidator(pool)

        tx = _spend(u1, alice, [(bob.public_key, 7), (carol.public_key, 3)])
        assert validator.process_epoch([tx]) == [tx]

        expected = UTXOPool()
        expected.add(UTXO(tx.tx_hash, 0), TxOutput(7, bob.public_key))
        expected.add(UTXO(tx.tx_hash, 1), TxOutput(3, carol.public_key))
        assert validator.pool == expected
        assert not validator.pool.contains(u1)

    def test_concrete_scenario_overspend(self, alice, bob, carol):
        u1 = UTXO(b"\x11" * 32, 0)
        pool = UTXOPool()
        pool.add(u1, TxOutput(10, alice.public_key))
        validator = TxValidator(pool)

        tx = _spend(u1, alice, [(bob.public_key, 8), (carol.public_key, 3)])
        assert validator.process_epoch([tx]) == []
        assert validator.pool == pool

    def test_conflict_first_in_order_wins(self, pool, genesis, alice, bob, carol):
        utxo = genesis.output_utxo(0)
        t1 = _spend(utxo, alice, [(bob.public_key, 10)])
        t2 = _spend(utxo, alice, [(carol.public_key, 9)])

        assert TxValidator(pool).process_epoch([t1, t2]) == [t1]
        assert TxValidator(pool).process_epoch([t2, t1]) == [t2]

    def test_chained_spend_within_epoch(self, validator, genesis, alice, bob, carol):
        """Outputs created earlier in the epoch are spendable later in it."""
        t1 = _spend(genesis.output_utxo(0), alice, [(bob.public_key, 10)])
        t2 = _spend(t1.output_utxo(0), bob, [(carol.public_key, 10)])

        assert validator.process_epoch([t1, t2]) == [t1, t2]
        assert validator.pool.get_balance(carol.public_key) == 10
        assert validator.pool.get_balance(bob.public_key) == 0

    def test_chained_spend_out_of_order_not_retried(self, validator, genesis, alice, bob, carol):
        """A child seen before its parent is rejected and not revisited."""
        t1 = _spend(genesis.output_utxo(0), alice, [(bob.public_key, 10)])
        t2 = _spend(t1.output_utxo(0), bob, [(carol.public_key, 10)])

        assert validator.process_epoch([t2, t1]) == [t1]
        assert validator.pool.contains(t1.output_utxo(0))

    def test_pool_roundtrip(self, pool, genesis, alice, bob, carol):
        """New pool = old pool - consumed + produced, nothing else."""
        t1 = _spend(genesis.output_utxo(0), alice, [(bob.public_key, 6), (carol.public_key, 4)])
        t2 = _spend(genesis.output_utxo(0), alice, [(carol.public_key, 1)])  # conflicts with t1
        t3 = _spend(genesis.output_utxo(1), alice, [(alice.public_key, 5)])  # overspend
        validator = TxValidator(pool)

        accepted = validator.process_epoch([t1, t2, t3])
        assert accepted == [t1]

        expected = pool.copy()
        for tx in accepted:
            for inp in tx.inputs:
                expected.remove(inp.utxo)
            for k, out in enumerate(tx.outputs):
                expected.add(UTXO(tx.tx_hash, k), out)
        assert validator.pool == expected

    def test_new_outputs_keyed_by_output_position(self, validator, genesis, alice, bob, carol):
        """Keys use the position inside the transaction, not in the batch."""
        rejected = _spend(UTXO(b"\x09" * 32, 0), alice, [(bob.public_key, 1)])
        tx = _spend(genesis.output_utxo(1), alice, [(bob.public_key, 1), (carol.public_key, 2)])
        validator.process_epoch([rejected, tx])

        pool = validator.pool
        assert pool.get_output(UTXO(tx.tx_hash, 0)) == TxOutput(1, bob.public_key)
        assert pool.get_output(UTXO(tx.tx_hash, 1)) == TxOutput(2, carol.public_key)

    def test_spent_output_stays_spent_across_epochs(self, validator, genesis, alice, bob, carol):
        t1 = _spend(genesis.output_utxo(0), alice, [(bob.public_key, 10)])
        replay = _spend(genesis.output_utxo(0), alice, [(carol.public_key, 10)])

        assert validator.process_epoch([t1]) == [t1]
        assert validator.process_epoch([replay]) == []
        assert validator.epoch == 2

    def test_resubmitted_transaction_rejected(self, validator, genesis, alice, bob):
        """The same transaction twice in one epoch is accepted only once."""
        tx = _spend(genesis.output_utxo(0), alice, [(bob.public_key, 10)])
        assert validator.process_epoch([tx, tx]) == [tx]

    def test_empty_epoch(self, validator, pool):
        assert validator.process_epoch([]) == []
        assert validator.pool == pool
        assert validator.epoch == 1

    def test_unfinalized_candidate_fails_before_mutation(self, validator, pool, genesis, alice, bob):
        good = _spend(genesis.output_utxo(0), alice, [(bob.public_key, 10)])
        unfinalized = Transaction()
        unfinalized.add_output(0, bob.public_key)

        with pytest.raises(ValueError):
            validator.process_epoch([good, unfinalized])
        assert validator.pool == pool
        assert validator.epoch == 0

    def test_oversized_output_rejected_without_partial_epoch(self, validator, genesis, alice, bob):
        """An output beyond the 8-byte range is rejected, not raised mid-epoch."""
        good = _spend(genesis.output_utxo(0), alice, [(bob.public_key, 10)])
        huge = Transaction()
        huge.add_input(genesis.tx_hash, 1)
        huge.add_output(2**63, bob.public_key)
        huge.tx_hash = b"\x07" * 32

        is_valid, error = validator.validate_transaction(huge)
        assert not is_valid
        assert "exceeds maximum" in error

        assert validator.process_epoch([good, huge]) == [good]
        assert validator.epoch == 1
        assert validator.pool.contains(genesis.output_utxo(1))
        assert validator.pool.contains(good.output_utxo(0))

    def test_unencodable_input_index_fails_before_mutation(self, validator, pool, genesis, alice, bob):
        good = _spend(genesis.output_utxo(0), alice, [(bob.public_key, 10)])
        bad = Transaction()
        bad.add_input(genesis.tx_hash, 2**32)
        bad.add_output(1, bob.public_key)
        bad.tx_hash = b"\x08" * 32

        with pytest.raises(ValueError):
            validator.process_epoch([good, bad])
        assert validator.pool == pool
        assert validator.epoch == 0

    def test_candidates_may_be_a_generator(self, validator, genesis, alice, bob):
        """A one-shot iterable is consumed once and still processed."""
        tx = _spend(genesis.output_utxo(0), alice, [(bob.public_key, 10)])
        accepted = validator.process_epoch(candidate for candidate in [tx])
        assert accepted == [tx]
        assert validator.pool.contains(tx.output_utxo(0))

    def test_stats(self, validator):
        assert validator.stats() == {"epoch": 0, "utxo_count": 2, "total_value": 14}


# =============================================================================
# Pool Helpers
# =============================================================================


class TestPoolHelpers:
    """Tests for apply_transaction and pool_from_transactions."""

    def test_apply_transaction(self, pool, genesis, alice, bob):
        tx = _spend(genesis.output_utxo(0), alice, [(bob.public_key, 10)])
        apply_transaction(pool, tx)
        assert not pool.contains(genesis.output_utxo(0))
        assert pool.get_output(UTXO(tx.tx_hash, 0)) == TxOutput(10, bob.public_key)

    def test_apply_requires_finalized(self, pool):
        with pytest.raises(ValueError):
            apply_transaction(pool, Transaction())

    def test_pool_from_transactions(self, genesis, alice):
        pool = pool_from_transactions([genesis])
        assert pool.all_utxos() == sorted([genesis.output_utxo(0), genesis.output_utxo(1)])
        assert pool.get_balance(alice.public_key) == 14


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
