"""Application settings read from the environment.

Domain infrastructure (providers, brokers, event store) is configured by
Protean from ``domain.toml``; only storefront-level settings live here.
"""

import os

DEFAULT_CURRENCY = "GBP"


def currency() -> str:
    return os.environ.get("STOREFRONT_CURRENCY", DEFAULT_CURRENCY).upper()
