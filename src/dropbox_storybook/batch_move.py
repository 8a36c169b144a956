"""Move a set of Dropbox files into one destination folder."""

from __future__ import annotations

import logging
import posixpath
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

from .dropbox_client import DropboxClient
from .models import BatchMoveResult, MoveFailure

logger = logging.getLogger(__name__)

T = TypeVar("T")

Caller = Callable[[Callable[[str], Awaitable[T]]], Awaitable[T]]


def destination_path(folder: str, path: str) -> str:
    return f"{folder.rstrip('/')}/{posixpath.basename(path)}"


async def batch_move_files(
    client: DropboxClient,
    call: Caller,
    paths: Sequence[str],
    destination_folder: str,
) -> BatchMoveResult:
    """Ensure ``destination_folder`` exists, then move each path into it in turn.

    A folder that cannot be created aborts the batch before any file is moved.
    Per-file move failures are collected into ``failed`` and never abort the rest.
    """
    folder_created = False
    exists = await call(lambda token: client.folder_exists(token, destination_folder))
    if not exists:
        logger.info("Destination folder %s does not exist, creating it", destination_folder)
        await call(lambda token: client.create_folder(token, destination_folder))
        folder_created = True

    result = BatchMoveResult(folder_created=folder_created)
    for path in paths:
        to_path = destination_path(destination_folder, path)
        try:
            await call(lambda token: client.move_file(token, path, to_path))
        except Exception as exc:
            logger.error("Failed to move %s: %s", path, exc)
            result.failed.append(MoveFailure(path=path, error=str(exc)))
        else:
            result.success.append(path)

    logger.info(
        "Batch move complete: %d succeeded, %d failed",
        len(result.success),
        len(result.failed),
    )
    return result
