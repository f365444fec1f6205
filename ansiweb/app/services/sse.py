from __future__ import annotations

import asyncio
import base64
import json
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator

from . import job_status
from .job_paths import JobPaths


@dataclass(frozen=True)
class TailChunk:
    offset: int
    next_offset: int
    chunk: bytes


def read_from_offset(path: Path, offset: int, max_bytes: int = 64 * 1024) -> TailChunk:
    if not path.exists():
        return TailChunk(offset=offset, next_offset=offset, chunk=b"")
    with path.open("rb") as f:
        f.seek(offset)
        data = f.read(max_bytes)
        next_offset = f.tell()
        return TailChunk(offset=offset, next_offset=next_offset, chunk=data)


def sse_event(event: str, payload: dict) -> str:
    return f"event: {event}\ndata: {json.dumps(payload, ensure_ascii=False)}\n\n"


async def tail_log_sse(
    *,
    paths: JobPaths,
    offset: int,
    heartbeat_seconds: int = 15,
    poll_interval_seconds: float = 0.25,
) -> AsyncIterator[str]:
    """
    Async generator that yields SSE lines for a job log.

    Ends with a `status` event once the job has a terminal status and every
    byte of the log has been sent.
    """

    loop = asyncio.get_running_loop()
    last_heartbeat = loop.time()
    current_offset = offset
    while True:
        # Status is read before the log: once it exists the log is final.
        record = job_status.read_status(paths)
        chunk = read_from_offset(paths.log, current_offset)
        if chunk.chunk:
            current_offset = chunk.next_offset
            payload = {
                "offset": current_offset,
                "chunk_b64": base64.b64encode(chunk.chunk).decode("ascii"),
            }
            yield sse_event("log", payload)
            continue

        if record.finished:
            yield sse_event("status", {"offset": current_offset, **record.to_dict()})
            return

        now = loop.time()
        if now - last_heartbeat >= heartbeat_seconds:
            last_heartbeat = now
            yield sse_event("heartbeat", {"ts": now})

        await asyncio.sleep(poll_interval_seconds)
