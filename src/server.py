"""Protean Engine runner for the marketplace domain.

Starts Engine workers that process events asynchronously in production:
- OutboxProcessor: polls outbox table, publishes events to Redis Streams
- StreamSubscriptions: reads Redis Streams, invokes event handlers
  (order rollups)

Usage:
    PROTEAN_ENV=production python src/server.py
"""

import asyncio

from protean.server.engine import Engine

from marketplace.utils.logging import configure_logging


def _get_domain():
    from marketplace.domain import marketplace

    marketplace.init()
    return marketplace


async def run():
    engine = Engine(_get_domain())
    await engine.run()


def main():
    configure_logging()
    asyncio.run(run())


if __name__ == "__main__":
    main()
