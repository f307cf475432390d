from __future__ import annotations

import logging
import socket
import uuid
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from fsmonitor.core.exceptions import InstanceNotFoundError
from fsmonitor.models import FileTransfer, Instance, is_unset, utcnow
from fsmonitor.storage import Registry

router = APIRouter()

logger = logging.getLogger("fsmonitor")


def get_registry(request: Request) -> Registry:
    return request.app.state.registry


def _log_access(request: Request) -> None:
    peer = request.client.host if request.client else "unknown"
    logger.info("event=request method=%s path=%s client=%s", request.method, request.url.path, peer)


def _client_ip(request: Request) -> str:
    """Address of the reporting client: X-Real-Ip, then X-Forwarded-For, then the peer."""
    addr = request.headers.get("x-real-ip", "").strip()
    if not addr:
        # X-Forwarded-For may list several hops; the first one is the client.
        addr = request.headers.get("x-forwarded-for", "").split(",")[0].strip()
    if not addr and request.client:
        addr = request.client.host
    return _strip_port(addr or "")


def _strip_port(addr: str) -> str:
    if addr.startswith("["):
        # [v6]:port
        return addr[1:].split("]", 1)[0]
    if addr.count(":") == 1:
        return addr.split(":", 1)[0]
    return addr


@router.post("/instances", status_code=202, dependencies=[Depends(_log_access)])
def add_instance(instance: Instance, request: Request, registry: Registry = Depends(get_registry)):
    now = utcnow()

    if not instance.instance_id:
        instance.instance_id = uuid.uuid4().hex
    if not instance.client_hostname:
        instance.client_hostname = socket.gethostname()
    instance.client_host_ip = _client_ip(request)
    if is_unset(instance.creation_time):
        instance.creation_time = now

    instance.terminated = False
    instance.termination_time = None
    instance.last_activity_time = max(now, instance.creation_time)

    registry.add_instance(instance)
    logger.info(
        "event=instance_registered instance_id=%s client_hostname=%s client_host_ip=%s",
        instance.instance_id,
        instance.client_hostname,
        instance.client_host_ip,
    )
    return Response(status_code=202, headers={"Location": f"/instances/{instance.instance_id}"})


@router.get("/instances", response_model=List[Instance], dependencies=[Depends(_log_access)])
def list_instances(registry: Registry = Depends(get_registry)):
    return registry.list_instances()


@router.get("/instances/{instance_id}", response_model=Instance, dependencies=[Depends(_log_access)])
def get_instance(instance_id: str, registry: Registry = Depends(get_registry)):
    instance = registry.get_instance(instance_id)
    if instance is None:
        raise HTTPException(status_code=404, detail=f"instance {instance_id} not found")
    return instance


@router.delete("/instances/{instance_id}", status_code=202, dependencies=[Depends(_log_access)])
def terminate_instance(instance_id: str, registry: Registry = Depends(get_registry)):
    try:
        registry.terminate_instance(instance_id)
    except InstanceNotFoundError as exc:
        logger.error("event=terminate_failed instance_id=%s error=%s", instance_id, exc)
        raise HTTPException(status_code=500, detail=str(exc))
    logger.info("event=instance_terminated instance_id=%s", instance_id)
    return Response(status_code=202)


@router.post("/transfers", status_code=202, dependencies=[Depends(_log_access)])
def add_transfer(transfer: FileTransfer, registry: Registry = Depends(get_registry)):
    # Two separate registry calls: a sweep or terminate can run in between.
    # If the instance is swept after the insert, the cascade removes the
    # transfer as well and the activity update reports the instance missing.
    try:
        registry.add_file_transfer(transfer)
        registry.update_instance_last_activity_time(transfer.instance_id)
    except InstanceNotFoundError as exc:
        logger.warning("event=transfer_rejected instance_id=%s reason=%s", transfer.instance_id, exc)
        raise HTTPException(status_code=400, detail=str(exc))
    return Response(status_code=202)


@router.get("/transfers", response_model=List[FileTransfer], dependencies=[Depends(_log_access)])
def list_transfers(registry: Registry = Depends(get_registry)):
    return registry.list_file_transfers()


@router.get("/transfers/{instance_id}", response_model=List[FileTransfer], dependencies=[Depends(_log_access)])
def list_transfers_for_instance(instance_id: str, registry: Registry = Depends(get_registry)):
    return registry.list_file_transfers_for_instance(instance_id)


@router.delete("/cleanup", status_code=202, dependencies=[Depends(_log_access)])
def clean_up(registry: Registry = Depends(get_registry)):
    registry.clean_up()
    return Response(status_code=202)


@router.delete("/cleanup/{days}", status_code=202, dependencies=[Depends(_log_access)])
def clean_up_days_old(days: int, registry: Registry = Depends(get_registry)):
    removed = registry.clear_older_than(days)
    logger.info("event=cleanup_requested days=%d removed=%d", days, removed)
    return Response(status_code=202)


@router.get("/healthz", dependencies=[Depends(_log_access)])
def healthz(registry: Registry = Depends(get_registry)):
    return {"status": "ok", **registry.stats()}
