"""Data access layer for counters.

The backend row is the single source of truth; the repository keeps no
counter values in memory. Concurrent increments stay correct because the
update is a single relative statement (``value = value + 1``) executed by
the backend under its row lock, never a read-modify-write in Python.
"""

from __future__ import annotations

from sqlalchemy import func, insert, select, update

from .database import StoreConnector
from .errors import ConstraintViolationError, CounterNotFoundError, QueryError
from .logger import get_logger
from .models import Counter

logger = get_logger(__name__)


class CounterRepository:
    """Repository for operations on the counters table."""

    def __init__(self, connector: StoreConnector):
        self._connector = connector

    @property
    def connector(self) -> StoreConnector:
        return self._connector

    def _select_value(self, counter_id: str) -> int | None:
        rows = self._connector.execute(
            select(Counter.value).where(Counter.id == counter_id)
        )
        return rows[0][0] if rows else None

    def _create(self, counter_id: str) -> None:
        try:
            self._connector.execute(insert(Counter).values(id=counter_id, value=0))
            logger.info("Created counter '%s'", counter_id)
        except ConstraintViolationError:
            # A concurrent caller inserted the row between our select and insert.
            logger.debug("Counter '%s' was created concurrently", counter_id)

    def increment(self, counter_id: str) -> int:
        """Add one to a counter, creating it at zero first if needed.

        Args:
            counter_id: Identifier of the counter row.

        Returns:
            The counter value produced by this call's increment.

        Raises:
            QueryError: If any statement fails. The counter is then left
                unchanged.
            DatabaseConnectionError: If the connector is not connected.
        """
        if self._select_value(counter_id) is None:
            self._create(counter_id)

        # Update and re-select share one transaction: the row lock taken by
        # the update is held until the value has been read back.
        with self._connector.transaction() as connection:
            result = connection.execute(
                update(Counter)
                .where(Counter.id == counter_id)
                .values(value=Counter.value + 1, updated_at=func.current_timestamp())
            )
            if result.rowcount != 1:
                raise QueryError(
                    f"Increment of counter '{counter_id}' matched {result.rowcount} rows"
                )
            value = connection.execute(
                select(Counter.value).where(Counter.id == counter_id)
            ).scalar_one()

        return value

    def read(self, counter_id: str) -> int:
        """Return the current value without changing it.

        Raises:
            CounterNotFoundError: If the counter has never been incremented.
        """
        value = self._select_value(counter_id)
        if value is None:
            raise CounterNotFoundError(counter_id)
        return value
