"""
JSON document schemas for the CLI.

Pool and epoch files carry bytes as hex strings (``0x`` prefix optional).
These models validate the documents and convert them to the core types.
"""

from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from txvalidator.core.state import UTXO, TxOutput, UTXOPool, Transaction, TxInput
from txvalidator.core.state.utxo import MAX_OUTPUT_INDEX, MAX_VALUE, MIN_VALUE
from txvalidator.crypto import bytes_to_hex, hex_to_bytes


def _parse_hex(value: str) -> bytes:
    try:
        return hex_to_bytes(value)
    except ValueError as e:
        raise ValueError(f"not a hex string: {value!r}") from e


class _Document(BaseModel):
    model_config = ConfigDict(extra="forbid")


class OutputDoc(_Document):
    value: int = Field(ge=MIN_VALUE, le=MAX_VALUE)
    address: str

    @field_validator("address")
    @classmethod
    def _check_address(cls, v: str) -> str:
        _parse_hex(v)
        return v

    def to_output(self) -> TxOutput:
        return TxOutput(self.value, hex_to_bytes(self.address))


class UTXODoc(OutputDoc):
    tx_hash: str
    index: int = Field(ge=0, le=MAX_OUTPUT_INDEX)

    @field_validator("tx_hash")
    @classmethod
    def _check_tx_hash(cls, v: str) -> str:
        _parse_hex(v)
        return v


class PoolDoc(_Document):
    utxos: List[UTXODoc] = Field(default_factory=list)

    def to_pool(self) -> UTXOPool:
        pool = UTXOPool()
        for entry in self.utxos:
            pool.add(UTXO(hex_to_bytes(entry.tx_hash), entry.index), entry.to_output())
        return pool

    @classmethod
    def from_pool(cls, pool: UTXOPool) -> "PoolDoc":
        utxos = []
        for utxo in pool.all_utxos():
            out = pool.get_output(utxo)
            utxos.append(UTXODoc(
                tx_hash=bytes_to_hex(utxo.tx_hash),
                index=utxo.index,
                value=out.value,
                address=bytes_to_hex(out.address),
            ))
        return cls(utxos=utxos)


class InputDoc(_Document):
    prev_tx_hash: str
    output_index: int = Field(ge=0, le=MAX_OUTPUT_INDEX)
    signature: str = ""

    @field_validator("prev_tx_hash", "signature")
    @classmethod
    def _check_hex(cls, v: str) -> str:
        _parse_hex(v)
        return v

    def to_input(self) -> TxInput:
        return TxInput(
            prev_tx_hash=hex_to_bytes(self.prev_tx_hash),
            output_index=self.output_index,
            signature=hex_to_bytes(self.signature),
        )


class TransactionDoc(_Document):
    inputs: List[InputDoc] = Field(default_factory=list)
    outputs: List[OutputDoc] = Field(default_factory=list)

    def to_transaction(self) -> Transaction:
        """Build the transaction; the hash is always recomputed."""
        tx = Transaction(
            inputs=[inp.to_input() for inp in self.inputs],
            outputs=[out.to_output() for out in self.outputs],
        )
        tx.finalize()
        return tx

    @classmethod
    def from_transaction(cls, tx: Transaction) -> "TransactionDoc":
        return cls(
            inputs=[
                InputDoc(
                    prev_tx_hash=bytes_to_hex(inp.prev_tx_hash),
                    output_index=inp.output_index,
                    signature=bytes_to_hex(inp.signature),
                )
                for inp in tx.inputs
            ],
            outputs=[
                OutputDoc(value=out.value, address=bytes_to_hex(out.address))
                for out in tx.outputs
            ],
        )


class EpochDoc(_Document):
    transactions: List[TransactionDoc] = Field(default_factory=list)

    def to_transactions(self) -> List[Transaction]:
        return [doc.to_transaction() for doc in self.transactions]
