"""Durable JSON file helpers."""

from pathlib import Path
from typing import Any, Optional
import asyncio
import json
import logging
import os

import aiofiles
import aiofiles.os

logger = logging.getLogger(__name__)


async def write_json_file(path: Path | str, data: Any) -> None:
    """
    Write a JSON document so that it survives a crash right after returning.
    
    The document goes to a temporary sibling first, is flushed and fsynced,
    and then atomically replaces the target. Errors propagate: a store that
    cannot write has no meaningful way to recover.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(path.name + ".tmp")
    
    payload = json.dumps(data, indent=2, ensure_ascii=False, default=str)
    
    async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
        await f.write(payload)
        await f.flush()
        await asyncio.to_thread(os.fsync, f.fileno())
    
    await aiofiles.os.replace(tmp_path, path)


async def read_json_file(path: Path | str) -> Any:
    """
    Read a JSON document.
    
    Raises:
        OSError: If the file cannot be read
        ValueError: If the file is not valid JSON
    """
    async with aiofiles.open(path, "r", encoding="utf-8") as f:
        return json.loads(await f.read())


async def try_read_json_file(path: Path | str, default: Any = None) -> Optional[Any]:
    """Read a JSON document, logging and returning ``default`` on any error."""
    path = Path(path)
    if not path.exists():
        return default
    try:
        return await read_json_file(path)
    except (OSError, ValueError) as e:
        logger.error(f"Error loading {path}: {e}")
        return default


async def write_text_file(path: Path | str, text: str) -> None:
    """Write a text file, creating its directory."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    async with aiofiles.open(path, "w", encoding="utf-8") as f:
        await f.write(text)
