"""
Diagnostic endpoints for monitoring the server process.

    GET /server-health   pid and current date
    GET /uptime          humanized process uptime
    GET /memory-usage    process memory counters in MB
    GET /cpu-usage       per-core time breakdown

Every reply is a SUCCESS envelope with the diagnostic in ``message``.
"""

import os
from datetime import datetime

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from servermon.core import metrics
from servermon.responses import Responder, get_responder
from servermon.responses.schemas import ResponseEnvelope
from servermon.utils.datetime import format_long_date, humanize_duration

router = APIRouter(tags=["health"])


@router.get("/server-health", response_model=ResponseEnvelope, summary="Server health")
async def server_health(responder: Responder = Depends(get_responder)) -> JSONResponse:
    return responder.success(
        {
            "message": (
                f"Health: Server instance is healthy with process id {os.getpid()} "
                f"on {format_long_date(datetime.now())}"
            )
        }
    )


@router.get("/uptime", response_model=ResponseEnvelope, summary="Process uptime")
async def uptime(responder: Responder = Depends(get_responder)) -> JSONResponse:
    duration = humanize_duration(metrics.process_uptime_seconds())
    return responder.success({"message": f"Server has been running for {duration}"})


@router.get("/memory-usage", response_model=ResponseEnvelope, summary="Memory usage")
async def memory_usage(responder: Responder = Depends(get_responder)) -> JSONResponse:
    """rss, heapTotal, heapUsed and external, each as "<n>.<nn> MB"."""
    return responder.success({"message": metrics.format_memory_usage(metrics.read_memory_usage())})


@router.get("/cpu-usage", response_model=ResponseEnvelope, summary="CPU usage")
async def cpu_usage(responder: Responder = Depends(get_responder)) -> JSONResponse:
    """
    One entry per logical core:

        {"cpu": 1, "model": "...", "speed": 2400,
         "usage": {"user": "3.10%", "nice": "0.00%", "sys": "1.20%",
                   "idle": "95.70%", "irq": "0.00%"}}
    """
    return responder.success({"message": metrics.describe_cpus(metrics.read_cpu_cores())})
