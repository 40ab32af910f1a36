"""
Base Orchestrator

Abstract base class for all orchestrators with built-in support for:
- Transactions (commit on success, full rollback on any failure)
- Transaction timeouts surfaced as a retryable error
- Step tracing (timed record of what an operation did, logged at DEBUG)

All feature orchestrators should extend this class.
"""

import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from purchase_timeline.config import Settings, settings as default_settings
from purchase_timeline.exceptions import TransactionTimeoutError
from purchase_timeline.logging import get_logger

logger = get_logger(__name__)

# PostgreSQL: query_canceled, lock_not_available
_TIMEOUT_PGCODES = {"57014", "55P03"}
_TIMEOUT_MESSAGES = (
    "database is locked",
    "statement timeout",
    "lock timeout",
)


class ExecutionStep:
    """One timed phase of an orchestrator operation."""

    def __init__(self, action: str, step_number: int):
        self.step = step_number
        self.action = action
        self.status = "in_progress"
        self.duration_ms: Optional[int] = None
        self.details: Dict[str, Any] = {}
        self.error: Optional[str] = None
        self._start_time = time.monotonic()

    def _finish(self, status: str) -> None:
        self.status = status
        self.duration_ms = int((time.monotonic() - self._start_time) * 1000)

    def complete(self) -> None:
        self._finish("success")

    def fail(self, error: str) -> None:
        self._finish("failed")
        self.error = error

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "step": self.step,
            "action": self.action,
            "status": self.status,
            "duration_ms": self.duration_ms,
        }
        if self.details:
            result["details"] = self.details
        if self.error:
            result["error"] = self.error
        return result


def is_timeout_error(error: OperationalError) -> bool:
    """Whether a driver error means the store gave up waiting."""
    pgcode = getattr(error.orig, "pgcode", None)
    if pgcode in _TIMEOUT_PGCODES:
        return True
    message = str(error.orig).lower()
    return any(fragment in message for fragment in _TIMEOUT_MESSAGES)


class BaseOrchestrator(ABC):
    """
    Abstract base orchestrator with transactions and traceability.

    Subclasses must implement:
    - orchestrator_name: str property

    Usage:
        class MyOrchestrator(BaseOrchestrator):
            @property
            def orchestrator_name(self) -> str:
                return "my_orchestrator"

            def do_something(self, owner_id):
                with self._transaction("do_something"):
                    with self._trace_step("load"):
                        ...
    """

    def __init__(self, db: Session, config: Optional[Settings] = None):
        """
        Initialize base orchestrator.

        Args:
            db: Database session
            config: Settings (defaults to the environment-derived settings)
        """
        self.db = db
        self.settings = config or default_settings
        self._execution_steps: List[ExecutionStep] = []
        self._step_counter = 0
        self._in_transaction = False

    @property
    @abstractmethod
    def orchestrator_name(self) -> str:
        """
        Name of this orchestrator, used in trace logs.

        Returns:
            Orchestrator name (e.g., "timeline_orchestrator")
        """
        pass

    @contextmanager
    def _transaction(self, operation: str):
        """
        Run a block as one transaction.

        Commits on success. Any exception rolls back everything the block
        wrote and is re-raised; a store-level timeout is re-raised as
        TransactionTimeoutError. A nested call joins the outer transaction.

        Usage:
            with self._transaction("create_step"):
                ...
        """
        if self._in_transaction:
            yield
            return

        self._in_transaction = True
        self._execution_steps = []
        self._step_counter = 0
        started = time.time()

        try:
            self._apply_timeout()
            yield
            with self._trace_step("commit"):
                self.db.commit()
        except OperationalError as e:
            self.db.rollback()
            if is_timeout_error(e):
                logger.warning(
                    "%s.%s timed out and was rolled back",
                    self.orchestrator_name,
                    operation,
                )
                raise TransactionTimeoutError(
                    f"{operation} timed out after "
                    f"{self.settings.database.transaction_timeout_seconds}s"
                ) from e
            logger.warning(
                "%s.%s rolled back: %s", self.orchestrator_name, operation, e
            )
            raise
        except Exception as e:
            self.db.rollback()
            logger.warning(
                "%s.%s rolled back: %s", self.orchestrator_name, operation, e
            )
            raise
        finally:
            self._in_transaction = False
            logger.debug(
                "%s.%s finished in %d ms",
                self.orchestrator_name,
                operation,
                int((time.time() - started) * 1000),
                extra={"extra": {"trace": self.get_trace()}},
            )

    def _apply_timeout(self) -> None:
        """Bound the transaction on PostgreSQL. SQLite uses the engine's busy timeout."""
        bind = self.db.get_bind()
        if bind.dialect.name != "postgresql":
            return
        timeout_ms = int(self.settings.database.transaction_timeout_seconds * 1000)
        self.db.execute(text(f"SET LOCAL statement_timeout = {timeout_ms}"))
        self.db.execute(text(f"SET LOCAL lock_timeout = {timeout_ms}"))

    @contextmanager
    def _trace_step(self, action: str):
        """
        Context manager for automatic step tracing.

        Usage:
            with self._trace_step("validate_input"):
                # do validation
                pass
        """
        self._step_counter += 1
        step = ExecutionStep(action, self._step_counter)
        self._execution_steps.append(step)

        try:
            yield step
            step.complete()
        except Exception as e:
            step.fail(str(e))
            raise

    def get_trace(self) -> List[Dict[str, Any]]:
        """Steps recorded by the last operation."""
        return [step.to_dict() for step in self._execution_steps]
