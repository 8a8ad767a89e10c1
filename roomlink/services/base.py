"""
Base service class shared by the domain services.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, Optional

from sqlalchemy.orm import Session

from roomlink.core.events import EventPublisher
from roomlink.utils.datetime_utils import Clock, utcnow


class BaseService:
    """
    Common service plumbing:

    - the request's database session and a ``transaction()`` helper
    - an injected event publisher, fired only after commit
    - an injectable clock so time-dependent rules are testable
    """

    def __init__(
        self,
        db: Session,
        publisher: Optional[EventPublisher] = None,
        clock: Clock = utcnow,
    ):
        self.db = db
        self.publisher = publisher
        self.clock = clock
        self._logger = logging.getLogger(f"{self.__class__.__module__}.{self.__class__.__name__}")

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Commit when the block succeeds, roll back and re-raise otherwise."""
        try:
            yield self.db
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def _publish(self, channels: Iterable[str], event: str, payload: Dict[str, Any]) -> None:
        if self.publisher is None:
            return
        try:
            self.publisher.publish(list(channels), event, payload)
        except Exception:
            # Real-time delivery is best effort once the write is committed
            self._logger.warning(f"Failed to publish {event}", exc_info=True)
