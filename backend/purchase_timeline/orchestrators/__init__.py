"""
Orchestrators package.

Orchestrators coordinate services to implement complete operations.
They own the transaction: services only flush, orchestrators commit or
roll back.

Orchestrators should:
    - Validate input before any write
    - Verify ownership once per operation
    - Run each mutation inside one transaction
    - Check invariants before committing

Difference between Services and Orchestrators:
    - Services: Single-responsibility, work inside the caller's transaction
    - Orchestrators: Multi-service coordination, transaction boundaries
"""

from purchase_timeline.orchestrators.base import (
    BaseOrchestrator,
    ExecutionStep,
)
from purchase_timeline.orchestrators.timeline_orchestrator import (
    TimelineOrchestrator,
)

__all__ = [
    "BaseOrchestrator",
    "ExecutionStep",
    "TimelineOrchestrator",
]
