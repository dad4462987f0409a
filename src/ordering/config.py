"""Runtime settings for the Ordering context.

Values come from the process environment and are read once, when the
service layer is built. Protean's own provider configuration (database,
broker, event store) lives in ``domain.toml`` and is not duplicated here.
"""

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class OrderingSettings:
    default_stock_location: str | None = None
    order_number_prefix: str = "ORD"

    @classmethod
    def from_env(cls) -> "OrderingSettings":
        return cls(
            default_stock_location=os.getenv("DEFAULT_STOCK_LOCATION") or None,
            order_number_prefix=os.getenv("ORDER_NUMBER_PREFIX", "ORD"),
        )
