"""
Event generation script for the chain index.

Writes a deterministic JSON-lines file of synthetic events for
`chainindex ingest`: transactions, token transfers, epochs, per-block burns
(split over several deliveries and partly redelivered) and swap / sync pairs
arriving in either order.
"""

from __future__ import annotations

import json
import random
import sys
import time
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any, Dict, Iterator, List

import typer

app = typer.Typer(help="Generate synthetic chain events as JSON lines.")

GENESIS = datetime(2024, 1, 1, tzinfo=UTC)
BLOCK_TIME = timedelta(seconds=1)


def _hex(rng: random.Random, size: int) -> str:
    return "0x" + rng.getrandbits(size * 8).to_bytes(size, "big").hex()


def _amount(rng: random.Random) -> int:
    # comfortably above the 10**9 truncation of the swap zero-leg check
    return rng.randint(1, 50_000) * 10**12


def _block_events(
    rng: random.Random, block: int, accounts: List[str], pairs: List[str], tokens: List[str]
) -> Iterator[Dict[str, Any]]:
    ts = (GENESIS + BLOCK_TIME * block).isoformat()
    tx_hashes: List[str] = []

    for trx_index in range(rng.randint(1, 6)):
        trx_hash = _hex(rng, 32)
        tx_hashes.append(trx_hash)
        sender, recipient = rng.sample(accounts, 2)
        yield {
            "kind": "transaction",
            "hash": trx_hash,
            "block_number": block,
            "trx_index": trx_index,
            "timestamp": ts,
            "sender": sender,
            "recipient": recipient,
            "value": _amount(rng),
            "gas": 21_000,
            "gas_used": 21_000,
            "gas_price": rng.randint(1, 100) * 10**9,
            "nonce": rng.randint(0, 1_000),
            "status": 1,
        }
        if rng.random() < 0.4:
            yield {
                "kind": "token_transfer",
                "trx_hash": trx_hash,
                "log_index": 0,
                "block_number": block,
                "trx_index": trx_index,
                "timestamp": ts,
                "token": rng.choice(tokens),
                "sender": sender,
                "recipient": recipient,
                "amount": _amount(rng),
            }

    # burn split over two deliveries, the first one delivered twice
    split = max(1, len(tx_hashes) // 2)
    for part in (tx_hashes[:split], tx_hashes[:split], tx_hashes[split:]):
        if part:
            yield {
                "kind": "burn",
                "block_number": block,
                "timestamp": ts,
                "amount": len(part) * rng.randint(1, 1_000) * 10**12,
                "tx_list": part,
            }

    if rng.random() < 0.5:
        trx_index = rng.randrange(len(tx_hashes))
        swap = {
            "kind": "swap",
            "tx_hash": tx_hashes[trx_index],
            "pair": rng.choice(pairs),
            "sender": rng.choice(accounts),
            "block_number": block,
            "trx_index": trx_index,
            "timestamp": ts,
            "type": 0,
            "log_index": 2,
            "amount0_in": _amount(rng),
            "amount1_out": _amount(rng) if rng.random() < 0.9 else 0,
        }
        sync = dict(
            swap,
            type=3,
            log_index=1,
            amount0_in=0,
            amount1_out=0,
            reserve0=_amount(rng) * 1_000,
            reserve1=_amount(rng) * 1_000,
        )
        yield from ((sync, swap) if rng.random() < 0.5 else (swap, sync))


def generate_events(
    blocks: int, seed: int, start_block: int = 1, epoch_every: int = 10
) -> Iterator[Dict[str, Any]]:
    """
    Yield events for `blocks` consecutive blocks, deterministic for a seed.
    """
    rng = random.Random(seed)
    accounts = [_hex(rng, 20) for _ in range(20)]
    pairs = [_hex(rng, 20) for _ in range(3)]
    tokens = [_hex(rng, 20) for _ in range(4)]

    for block in range(start_block, start_block + blocks):
        yield from _block_events(rng, block, accounts, pairs, tokens)
        if epoch_every and (block - start_block + 1) % epoch_every == 0:
            yield {
                "kind": "epoch",
                "id": (block - start_block + 1) // epoch_every,
                "end_time": (GENESIS + BLOCK_TIME * block).isoformat(),
                "duration": epoch_every,
                "epoch_fee": rng.randint(1, 100) * 10**15,
            }


def write_events(path: Path, blocks: int, seed: int) -> int:
    """Write the events as JSON lines; returns the number of lines."""
    written = 0
    with path.open("w", encoding="utf-8") as fh:
        for event in generate_events(blocks, seed):
            fh.write(json.dumps(event) + "\n")
            written += 1
    return written


@app.command()
def main(
    blocks: int = typer.Option(
        100,
        "--blocks",
        "-n",
        help="Number of blocks to generate events for.",
    ),
    seed: int = typer.Option(
        42,
        "--seed",
        help="Deterministic RNG seed.",
    ),
    output: Path = typer.Option(
        Path("events.jsonl"),
        "--output",
        "-o",
        help="JSON-lines output path.",
    ),
) -> None:
    """
    Generate synthetic events for `chainindex ingest`.
    """
    start = time.perf_counter()
    output.parent.mkdir(parents=True, exist_ok=True)
    typer.echo(f"Generating events for {blocks:,} blocks -> {output} (seed={seed})")
    written = write_events(output, blocks=blocks, seed=seed)
    duration = time.perf_counter() - start
    typer.echo(f"Wrote {written:,} events in {duration:.2f}s")


if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)
