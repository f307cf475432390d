from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, List, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps on the wire are taken as UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UTCDateTime = Annotated[datetime, AfterValidator(_as_utc)]

# Unset timestamps from clients that send the zero time instead of omitting it.
ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)


def is_unset(value: Optional[datetime]) -> bool:
    return value is None or value == ZERO_TIME


class FileBlock(BaseModel):
    model_config = ConfigDict(extra="ignore")

    offset: int = 0
    length: int = 0
    access_time: Optional[UTCDateTime] = None


class Instance(BaseModel):
    """A registered filesystem-client session.

    The connection snapshot (host through pool_address) is reported by the
    client and stored as-is. client_host_ip is always filled by the server.
    """

    model_config = ConfigDict(extra="ignore")

    host: str = ""
    port: int = 0
    zone: str = ""
    client_user: str = ""
    proxy_user: str = ""
    auth_scheme: str = ""
    read_ahead_max: int = 0
    operation_timeout: str = ""
    connection_idle_timeout: str = ""
    connection_max: int = 0
    metadata_cache_timeout: str = ""
    metadata_cache_cleanup_time: str = ""
    buffer_size_max: int = 0

    pool_address: str = ""

    client_hostname: str = ""
    client_host_ip: str = ""  # filled by server
    instance_id: str = ""

    creation_time: Optional[UTCDateTime] = None
    last_activity_time: Optional[UTCDateTime] = None
    termination_time: Optional[UTCDateTime] = None
    terminated: bool = False


class FileTransfer(BaseModel):
    """One completed file I/O session reported by an instance."""

    model_config = ConfigDict(extra="ignore")

    instance_id: str = Field(min_length=1)

    file_path: str = ""
    file_size: int = 0
    file_open_mode: str = ""

    transfer_blocks: List[FileBlock] = Field(default_factory=list)
    transfer_size: int = 0
    largest_block_size: int = 0
    smallest_block_size: int = 0
    transfer_block_count: int = 0
    sequential_access: bool = False

    file_open_time: Optional[UTCDateTime] = None
    file_close_time: Optional[UTCDateTime] = None
