"""Best-effort inventory side effects and the outcome returned to callers.

Once an order is persisted, inventory calls are not allowed to undo it. Each
item is attempted; failures are logged and collected so that callers can tell
a clean success from a success with inventory anomalies.
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

import structlog

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class InventoryFailure:
    variant_id: str
    location_id: str | None
    quantity: int
    error: str


@dataclass
class CompensationReport:
    action: str
    location_id: str | None = None
    attempted: list[str] = field(default_factory=list)
    failures: list[InventoryFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    @property
    def succeeded(self) -> list[str]:
        failed = {f.variant_id for f in self.failures}
        return [v for v in self.attempted if v not in failed]


@dataclass(frozen=True)
class OrderOutcome:
    """The persisted order plus what happened to inventory along the way."""

    order: object
    inventory: CompensationReport | None = None

    @property
    def order_id(self) -> str:
        return str(self.order.id)

    @property
    def has_inventory_anomalies(self) -> bool:
        return self.inventory is not None and not self.inventory.ok


def apply_best_effort(
    action: str,
    order_id: str,
    items: Iterable,
    location_id: str | None,
    operation: Callable[[object, str], object],
) -> CompensationReport:
    """Run ``operation(item, location_id)`` for every item, never stopping early."""
    report = CompensationReport(action=action, location_id=location_id)
    for item in items:
        report.attempted.append(item.variant_id)
        if location_id is None:
            error = "No fulfillment location available"
        else:
            try:
                operation(item, location_id)
                continue
            except Exception as exc:  # noqa: BLE001
                error = str(exc) or exc.__class__.__name__
        logger.warning(
            "Inventory operation failed",
            action=action,
            order_id=order_id,
            variant_id=item.variant_id,
            location_id=location_id,
            quantity=item.quantity,
            error=error,
        )
        report.failures.append(
            InventoryFailure(
                variant_id=item.variant_id,
                location_id=location_id,
                quantity=item.quantity,
                error=error,
            )
        )
    return report
