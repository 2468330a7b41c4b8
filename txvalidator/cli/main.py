"""
txvalidator CLI - Command Line Interface

Main entry point for all CLI commands.
"""

import json
from pathlib import Path
from typing import Optional

import click
from pydantic import BaseModel, ValidationError

from txvalidator.utils.logger import ValidatorLogger, setup_logging, get_logger


def _load_document(path: str, model: type) -> BaseModel:
    """Read a JSON file and validate it against ``model``."""
    try:
        return model.model_validate_json(Path(path).read_text(encoding="utf-8"))
    except ValidationError as e:
        raise click.ClickException(f"{path}: {e}") from e


def _emit(data: dict, out: Optional[str]) -> None:
    text = json.dumps(data, indent=2)
    if out:
        Path(out).write_text(text + "\n", encoding="utf-8")
    else:
        click.echo(text)


def _parse_outpoint(value: str):
    from txvalidator.core.state import UTXO
    from txvalidator.crypto import hex_to_bytes

    tx_hash, sep, index = value.rpartition(":")
    if not sep:
        raise click.BadParameter(f"expected TX_HASH:INDEX, got {value!r}")
    try:
        return UTXO(hex_to_bytes(tx_hash), int(index))
    except ValueError as e:
        raise click.BadParameter(str(e)) from e


def _parse_payment(value: str):
    from txvalidator.core.state.utxo import MAX_VALUE, MIN_VALUE
    from txvalidator.crypto import hex_to_bytes

    address, sep, amount = value.rpartition(":")
    if not sep:
        raise click.BadParameter(f"expected ADDRESS:VALUE, got {value!r}")
    try:
        address_bytes, amount = hex_to_bytes(address), int(amount)
    except ValueError as e:
        raise click.BadParameter(str(e)) from e
    if not MIN_VALUE <= amount <= MAX_VALUE:
        raise click.BadParameter(f"value out of range: {amount}")
    return address_bytes, amount


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False), help="JSON config file")
@click.version_option(version="0.1.0")
@click.pass_context
def cli(ctx, debug, config_path):
    """UTXO transaction validator"""
    import logging
    from txvalidator.core.config import load_config

    try:
        cfg = load_config(config_path)
    except (ValueError, json.JSONDecodeError) as e:
        raise click.ClickException(f"Invalid configuration: {e}") from e

    level = logging.DEBUG if debug else cfg.level
    if cfg.log_to_file:
        ValidatorLogger.reset()
    setup_logging(level=level, log_dir=cfg.log_dir, log_to_file=cfg.log_to_file)
    ValidatorLogger.set_level(level)

    ctx.ensure_object(dict)
    ctx.obj["config"] = cfg


# =============================================================================
# Key Commands
# =============================================================================


@cli.command("keygen")
@click.option("--out", type=click.Path(dir_okay=False), help="Write the key pair to this file")
def keygen(out):
    """Generate a secp256k1 key pair"""
    from txvalidator.crypto import generate_keypair, bytes_to_hex

    kp = generate_keypair()
    _emit(
        {
            "address": kp.address,
            "public_key": bytes_to_hex(kp.public_key),
            "private_key": bytes_to_hex(kp.private_key),
        },
        out,
    )
    if out:
        click.echo(f"✓ Key pair saved to: {out}", err=True)
        click.echo("  ⚠️  The file holds an unencrypted private key", err=True)


# =============================================================================
# Transaction Commands
# =============================================================================


@cli.command("transfer")
@click.option("--key", "key_file", required=True, type=click.Path(exists=True, dir_okay=False),
              help="Key file from `keygen`, used to sign every input")
@click.option("--spend", multiple=True, required=True, help="Input to spend, TX_HASH:INDEX")
@click.option("--pay", multiple=True, required=True, help="Output to create, ADDRESS:VALUE")
@click.option("--out", type=click.Path(dir_okay=False), help="Write the transaction to this file")
def transfer(key_file, spend, pay, out):
    """Build and sign a transfer transaction"""
    from txvalidator.cli.schema import TransactionDoc
    from txvalidator.core.state import create_transfer
    from txvalidator.crypto import hex_to_bytes, bytes_to_hex

    try:
        key_data = json.loads(Path(key_file).read_text(encoding="utf-8"))
        private_key = hex_to_bytes(key_data["private_key"])
    except json.JSONDecodeError as e:
        raise click.ClickException(f"{key_file}: not a JSON key file: {e}") from e
    except KeyError as e:
        raise click.ClickException(f"{key_file}: missing field {e}") from e
    except (TypeError, ValueError, AttributeError) as e:
        raise click.ClickException(f"{key_file}: invalid private_key: {e}") from e

    inputs = [(_parse_outpoint(s), private_key) for s in spend]
    recipients = [_parse_payment(p) for p in pay]
    tx = create_transfer(inputs=inputs, recipients=recipients)

    doc = TransactionDoc.from_transaction(tx).model_dump()
    doc_hash = bytes_to_hex(tx.tx_hash)
    get_logger("cli").info(f"Built transfer {doc_hash[:10]}...")
    _emit({"tx_hash": doc_hash, "transaction": doc}, out)


@cli.command("process")
@click.argument("pool_file", type=click.Path(exists=True, dir_okay=False))
@click.argument("epoch_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--out", type=click.Path(dir_okay=False), help="Write the result to this file")
def process(pool_file, epoch_file, out):
    """Run one epoch of transactions against a pool"""
    from txvalidator.cli.schema import PoolDoc, EpochDoc
    from txvalidator.core.validator import TxValidator
    from txvalidator.crypto import bytes_to_hex

    pool = _load_document(pool_file, PoolDoc).to_pool()
    candidates = _load_document(epoch_file, EpochDoc).to_transactions()

    validator = TxValidator(pool)
    accepted = validator.process_epoch(candidates)
    accepted_ids = {id(tx) for tx in accepted}

    _emit(
        {
            "accepted": [bytes_to_hex(tx.tx_hash) for tx in accepted],
            "rejected": [bytes_to_hex(tx.tx_hash) for tx in candidates if id(tx) not in accepted_ids],
            "pool": PoolDoc.from_pool(validator.pool).model_dump(),
        },
        out,
    )


# =============================================================================
# Demo Command
# =============================================================================


@cli.command("demo")
def demo():
    """Run a short demo of epoch processing"""
    from txvalidator.crypto import generate_keypair
    from txvalidator.core.state import create_coinbase, create_transfer
    from txvalidator.core.validator import TxValidator, pool_from_transactions

    click.echo("=" * 60)
    click.echo("  UTXO VALIDATOR - DEMO")
    click.echo("=" * 60)
    click.echo()

    kp_alice = generate_keypair()
    kp_bob = generate_keypair()
    kp_carol = generate_keypair()

    click.echo("📦 Seeding pool: Alice owns 10...")
    genesis = create_coinbase([(kp_alice.public_key, 10)])
    validator = TxValidator(pool_from_transactions([genesis]))
    alice_utxo = genesis.output_utxo(0)
    click.echo(f"  ✓ Pool: {validator.pool}")
    click.echo()

    click.echo("💸 Epoch 1: Alice pays Bob 7 and Carol 3...")
    pay = create_transfer(
        inputs=[(alice_utxo, kp_alice.private_key)],
        recipients=[(kp_bob.public_key, 7), (kp_carol.public_key, 3)],
    )
    overspend = create_transfer(
        inputs=[(alice_utxo, kp_alice.private_key)],
        recipients=[(kp_bob.public_key, 11)],
    )
    accepted = validator.process_epoch([overspend, pay])
    click.echo(f"  ✓ Accepted {len(accepted)}/2 (overspend of 11 rejected)")
    pool = validator.pool
    click.echo(f"  ✓ Bob: {pool.get_balance(kp_bob.public_key)}, Carol: {pool.get_balance(kp_carol.public_key)}")
    click.echo()

    click.echo("⚔️  Epoch 2: Bob signs two conflicting spends of the same output...")
    bob_utxo = pay.output_utxo(0)
    to_alice = create_transfer(
        inputs=[(bob_utxo, kp_bob.private_key)],
        recipients=[(kp_alice.public_key, 7)],
    )
    to_carol = create_transfer(
        inputs=[(bob_utxo, kp_bob.private_key)],
        recipients=[(kp_carol.public_key, 6)],
    )
    accepted = validator.process_epoch([to_alice, to_carol])
    winner = "Alice" if accepted == [to_alice] else "Carol"
    click.echo(f"  ✓ Accepted {len(accepted)}/2, first in order wins: paid {winner}")
    click.echo()

    click.echo(f"📊 Final state: {validator.stats()}")
