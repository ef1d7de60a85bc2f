"""Crash-safe file persistence for the stream registry.

The whole registry is encoded as one orjson document and replaced atomically:
the new state is written to a temporary file next to the target (mode 0600),
fsynced, then renamed over the target. A reader of the target path therefore
sees either the previous complete state or the new one.
"""

from __future__ import annotations

import base64
import os
import tempfile
from pathlib import Path

import orjson
from loguru import logger
from pydantic import ValidationError

from app.schemas import StoreState, StreamRecord
from app.utils.app_errors import StateLoadError

FORMAT_VERSION = 1


def encode_state(state: StoreState) -> bytes:
    return orjson.dumps(
        {
            "version": FORMAT_VERSION,
            "secret": base64.b64encode(state.secret).decode("ascii"),
            "ctrl_url": state.ctrl_url,
            "streams": [stream.model_dump() for stream in state.streams],
        }
    )


def decode_state(data: bytes) -> StoreState:
    """Decode a persisted blob.

    Raises:
        StateLoadError: If the blob is not a valid registry document
    """
    try:
        doc = orjson.loads(data)
        if not isinstance(doc, dict):
            raise ValueError("top-level value is not an object")
        version = doc.get("version")
        if version != FORMAT_VERSION:
            raise ValueError(f"unsupported format version {version!r}")
        return StoreState(
            secret=base64.b64decode(doc.get("secret") or "", validate=True),
            ctrl_url=doc.get("ctrl_url") or "",
            streams=[StreamRecord.model_validate(s) for s in doc.get("streams") or []],
        )
    except (orjson.JSONDecodeError, ValidationError, ValueError, TypeError) as e:
        raise StateLoadError(f"Failed to parse stream state: {e}") from e


class StatePersistence:
    """Reads and atomically replaces the registry file at `path`."""

    def __init__(self, path: str | os.PathLike[str]):
        self.path = Path(path)

    def load(self) -> StoreState | None:
        """Return the persisted state, or None when no file exists yet.

        Raises:
            StateLoadError: If the file exists but is unreadable or corrupt
        """
        try:
            data = self.path.read_bytes()
        except FileNotFoundError:
            logger.info("No previous state at {}, starting empty", self.path)
            return None
        except OSError as e:
            raise StateLoadError(f"Failed to read stream state from {self.path}: {e}") from e

        state = decode_state(data)
        logger.info("State restored from {} ({} streams)", self.path, len(state.streams))
        return state

    def write(self, data: bytes) -> None:
        """Atomically replace the target file with `data`.

        Raises:
            OSError: If the temporary write or the rename fails
        """
        directory = self.path.parent
        directory.mkdir(parents=True, exist_ok=True)

        # mkstemp creates the file with mode 0600
        fd, tmp_path = tempfile.mkstemp(prefix=f".{self.path.name}.", suffix=".tmp", dir=directory)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except FileNotFoundError:
                pass
            raise

    def save(self, state: StoreState) -> None:
        self.write(encode_state(state))
