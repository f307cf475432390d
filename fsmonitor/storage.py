from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from fsmonitor.config import DATA_LIFESPAN_DAYS
from fsmonitor.core.exceptions import InstanceNotFoundError
from fsmonitor.models import FileTransfer, Instance, is_unset, utcnow

logger = logging.getLogger("fsmonitor.storage")


class Registry:
    """Thread-safe in-memory registry of instances and their file transfers.

    Both maps sit behind one lock because deleting an instance cascades into
    its transfers and the retention sweep walks every instance. Records are
    copied on the way in and out, so stored state only changes under the lock.

    Every insert first sweeps instances created more than ``retention_days``
    ago. The sweep takes the lock on its own and releases it before the
    insert takes it again.
    """

    def __init__(self, retention_days: int = DATA_LIFESPAN_DAYS, clock: Optional[Callable[[], datetime]] = None) -> None:
        self.retention_days = retention_days
        self._clock = clock or utcnow
        self._lock = threading.Lock()
        self._instances: Dict[str, Instance] = {}
        self._transfers: Dict[str, List[FileTransfer]] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._instances)

    def add_instance(self, instance: Instance) -> None:
        if not instance.instance_id:
            raise ValueError("instance_id must be assigned before the instance is stored")

        self.clear_older_than(self.retention_days)

        record = instance.model_copy(deep=True)
        with self._lock:
            if is_unset(record.creation_time):
                record.creation_time = self._clock()
            self._instances[record.instance_id] = record

    def get_instance(self, instance_id: str) -> Optional[Instance]:
        with self._lock:
            record = self._instances.get(instance_id)
            return record.model_copy(deep=True) if record is not None else None

    def list_instances(self) -> List[Instance]:
        """All live instances, oldest first; equal creation times fall back to instance_id."""
        with self._lock:
            records = [record.model_copy(deep=True) for record in self._instances.values()]
        records.sort(key=lambda record: (record.creation_time, record.instance_id))
        return records

    def update_instance_last_activity_time(self, instance_id: str) -> None:
        with self._lock:
            record = self._instances.get(instance_id)
            if record is None:
                raise InstanceNotFoundError(instance_id)
            record.last_activity_time = self._activity_time(record)

    def terminate_instance(self, instance_id: str) -> None:
        with self._lock:
            record = self._instances.get(instance_id)
            if record is None:
                raise InstanceNotFoundError(instance_id)
            now = self._activity_time(record)
            record.terminated = True
            record.termination_time = now
            record.last_activity_time = now

    def add_file_transfer(self, transfer: FileTransfer) -> None:
        self.clear_older_than(self.retention_days)

        record = transfer.model_copy(deep=True)
        with self._lock:
            if record.instance_id not in self._instances:
                raise InstanceNotFoundError(record.instance_id)
            self._transfers.setdefault(record.instance_id, []).append(record)

    def list_file_transfers(self) -> List[FileTransfer]:
        with self._lock:
            return [
                record.model_copy(deep=True)
                for records in self._transfers.values()
                for record in records
            ]

    def list_file_transfers_for_instance(self, instance_id: str) -> List[FileTransfer]:
        with self._lock:
            return [record.model_copy(deep=True) for record in self._transfers.get(instance_id, [])]

    def clean_up(self) -> None:
        with self._lock:
            self._instances = {}
            self._transfers = {}
        logger.info("event=cleanup_all")

    def clear_older_than(self, days: int) -> int:
        """Drop instances created before ``now - days`` along with their transfers.

        Age is measured from creation_time, so an instance that is still
        reporting is removed once it is old enough. Returns the number of
        instances removed.

        A cutoff beyond the datetime range removes nothing for positive
        ``days`` and everything for negative ``days``.
        """
        with self._lock:
            try:
                cutoff = self._clock() - timedelta(days=days)
            except OverflowError:
                cutoff = None
            expired = [
                instance_id
                for instance_id, record in self._instances.items()
                if record.creation_time is not None
                and (record.creation_time < cutoff if cutoff is not None else days < 0)
            ]
            for instance_id in expired:
                self._transfers.pop(instance_id, None)
                del self._instances[instance_id]

        if expired:
            logger.info("event=cleanup_old days=%d removed=%d", days, len(expired))
        return len(expired)

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                "instances": len(self._instances),
                "transfers": sum(len(records) for records in self._transfers.values()),
            }

    def _activity_time(self, record: Instance) -> datetime:
        # Must be called with the lock held.
        now = self._clock()
        if record.creation_time is not None and now < record.creation_time:
            return record.creation_time
        return now
