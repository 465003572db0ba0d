import os
import re
import logging
import asyncio
import time
from typing import BinaryIO, List

logger = logging.getLogger(__name__)

TRACK_EXTENSION = ".mp3"


class TrackNotFound(Exception):
    pass


def _list_tracks(upload_dir: str) -> List[str]:
    os.makedirs(upload_dir, exist_ok=True)
    # Stored names start with the upload epoch-ms, so name order is upload order
    return sorted(f for f in os.listdir(upload_dir) if f.endswith(TRACK_EXTENSION))


def stored_name(original: str, epoch_ms: int = None) -> str:
    if epoch_ms is None:
        epoch_ms = int(time.time() * 1000)
    cleaned = re.sub(r"\s", "_", os.path.basename(original))
    return f"{epoch_ms}_{cleaned}"


def _save_upload(upload_dir: str, original: str, source: BinaryIO) -> str:
    os.makedirs(upload_dir, exist_ok=True)
    filename = stored_name(original)
    with open(os.path.join(upload_dir, filename), "wb") as out:
        while True:
            chunk = source.read(1024 * 1024)
            if not chunk:
                break
            out.write(chunk)
    logger.info(f"Stored upload {filename}")
    return filename


def _delete_track(upload_dir: str, song: str) -> None:
    # Only the basename is honoured so a request can't reach outside upload_dir
    path = os.path.join(upload_dir, os.path.basename(song))
    try:
        os.remove(path)
    except FileNotFoundError:
        raise TrackNotFound(song)
    logger.info(f"Deleted track {os.path.basename(song)}")


async def list_tracks(upload_dir: str) -> List[str]:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, _list_tracks, upload_dir)


async def save_upload(upload_dir: str, original: str, source: BinaryIO) -> str:
    """
    Writes an uploaded file into the store in a thread pool to avoid blocking.
    """
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, _save_upload, upload_dir, original, source)


async def delete_track(upload_dir: str, song: str) -> None:
    loop = asyncio.get_running_loop()
    await loop.run_in_executor(None, _delete_track, upload_dir, song)
