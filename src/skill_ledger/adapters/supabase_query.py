"""Helpers for running Supabase queries from async code."""

import asyncio
import base64
from datetime import datetime
from typing import Any

from postgrest.exceptions import APIError

from skill_ledger.errors import StorageError

UNIQUE_VIOLATION = "23505"


async def execute(query: Any) -> Any:
    """Run a PostgREST query builder in a worker thread.

    The Supabase client is synchronous; running it off the event loop keeps
    concurrent sessions from blocking each other.
    """
    try:
        return await asyncio.to_thread(query.execute)
    except APIError as exc:
        raise StorageError(f"Supabase query failed: {exc.message}") from exc


def encode_bytes(value: bytes | None) -> str | None:
    """Encode binary column values as base64 text."""
    if value is None:
        return None
    return base64.b64encode(value).decode("ascii")


def decode_bytes(value: str | None) -> bytes | None:
    """Decode base64 text column values."""
    if value is None:
        return None
    return base64.b64decode(value)


def parse_timestamp(value: str | datetime) -> datetime:
    """Parse a PostgREST timestamp column."""
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)
