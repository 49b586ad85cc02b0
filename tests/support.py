"""Test support: wallets and a pipeline pump."""

from __future__ import annotations

WALLET = "0x" + "ab" * 20
OTHER_WALLET = "0x" + "cd" * 20


async def run_pipeline(relay, consumer, max_rounds: int = 20) -> int:  # noqa: ANN001
    """Relay and consume until neither has anything left to do.

    Returns the number of change events the consumer processed.
    """
    processed_total = 0
    for _ in range(max_rounds):
        relayed = await relay.drain()
        processed = await consumer.consume(block_ms=10)
        processed_total += processed
        if relayed == 0 and processed == 0:
            return processed_total
    raise AssertionError(f"pipeline still busy after {max_rounds} rounds")
