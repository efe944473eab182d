"""
SequenceService -- monotonic sequence allocation via locked counter rows.

Responsibility:
    Hands out strictly increasing integers per sequence name.  The khata
    uses one store-wide sequence for bill and payment entries; it is the
    tie-break when two entries share an entry_date.

Invariants enforced:
    - The locked counter row is the only source of the next value; the
      aggregate max-plus-one pattern is never used.
    - The increment is only visible once the caller's transaction commits;
      a rollback returns the value.

Failure modes:
    - SequenceConflictError when two transactions create the same counter
      row concurrently.  The caller rolls back and retries.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from resale_kernel.exceptions import SequenceConflictError
from resale_kernel.logging_config import get_logger
from resale_kernel.models.sequence import SequenceCounter

logger = get_logger("store.sequence")


class SequenceService:
    """
    Transactional sequence numbers.

    Does NOT call ``session.commit()``; the caller owns the transaction.

    Usage:
        seq = SequenceService(session).next_value(LEDGER_ENTRY_SEQUENCE)
    """

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Lock (or create) the counter row, increment it, return the new value.

        Returns:
            An integer > 0, greater than any value previously returned for
            this name.
        """
        counter = self._locked_counter(sequence_name)

        if counter is None:
            counter = SequenceCounter(name=sequence_name, current_value=1)
            self._session.add(counter)
            try:
                self._session.flush()
            except IntegrityError as exc:
                logger.warning(
                    "sequence_counter_race",
                    extra={"sequence_name": sequence_name},
                )
                raise SequenceConflictError(sequence_name) from exc
            logger.debug(
                "sequence_allocated",
                extra={"sequence_name": sequence_name, "value": 1},
            )
            return 1

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        """Current value without incrementing; None if never allocated."""
        counter = self._session.execute(
            select(SequenceCounter).where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()
        return counter.current_value if counter else None
