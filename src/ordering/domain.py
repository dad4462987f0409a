"""Ordering bounded context: Order Management.

Handles the order lifecycle (CQRS aggregate with status history and an
audit event log) and the orchestration that keeps inventory in step with
order status changes.
"""

import structlog
from protean.domain import Domain

ordering = Domain(name="ordering")

logger = structlog.get_logger(__name__)
