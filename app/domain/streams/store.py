"""In-memory stream registry with synchronous durable persistence.

All access goes through one readers/writer lock. Read operations take the
shared scope; every mutation takes the exclusive scope and persists the full
state before releasing it, so callers only return once the write hit disk.

Records never leave the lock scope by reference: lookups and listings return
copies, mutations are addressed by id or by (application, name).
"""

from __future__ import annotations

import asyncio
import secrets
from collections.abc import Iterator

from loguru import logger
from pydantic import ValidationError

from app.domain.utils.idgen import new_stream_id
from app.schemas import AuthDecision, StoreState, StreamRecord
from app.shared.lock import ReadWriteLock
from app.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

from .persistence import StatePersistence, encode_state

SECRET_SIZE = 32


def _not_found(id: str) -> AppError:
    return AppError(
        errcode=AppErrorCode.E_STREAM_NOT_FOUND,
        errmesg=f"Stream {id} not found",
        status_code=HttpStatusCode.NOT_FOUND,
    )


class StreamStore:
    """Authoritative registry of credential records."""

    def __init__(self, persistence: StatePersistence, state: StoreState | None = None):
        self._persistence = persistence
        self._state = state or StoreState()
        self._lock = ReadWriteLock("stream-store")
        # ids handed out by this process, including removed ones
        self._issued_ids: set[str] = {s.id for s in self._state.streams}

    @classmethod
    async def open(cls, persistence: StatePersistence) -> StreamStore:
        """Build the registry from persisted state, creating it on first start.

        Raises:
            StateLoadError: If the persisted file exists but cannot be decoded
        """
        state = await asyncio.to_thread(persistence.load)
        store = cls(persistence, state)

        if not store._state.secret:
            async with store._lock.write():
                store._state.secret = secrets.token_bytes(SECRET_SIZE)
                await store._persist("init")
            logger.info("Generated new registry secret")

        return store

    @property
    def secret(self) -> bytes:
        # written once in open() and never mutated afterwards
        return self._state.secret

    # ------------------------------------------------------------------
    # Internal helpers, callers must hold the lock
    # ------------------------------------------------------------------
    def _find(self, id: str) -> StreamRecord | None:
        for stream in self._state.streams:
            if stream.id == id:
                return stream
        return None

    def _by_app_name(self, app: str, name: str) -> Iterator[StreamRecord]:
        for stream in self._state.streams:
            if stream.application == app and stream.name == name:
                yield stream

    def _is_active_by_app_name(self, app: str, name: str, exclude_id: str | None = None) -> bool:
        return any(s.active and s.id != exclude_id for s in self._by_app_name(app, name))

    async def _persist(self, action: str) -> None:
        """Write the full state. Must be called under the write scope.

        The in-memory mutation is kept when the write fails; the failure is
        logged and surfaced to the caller.
        """
        try:
            data = encode_state(self._state)
            await asyncio.to_thread(self._persistence.write, data)
        except (OSError, TypeError) as e:
            logger.error(
                "Persisting registry after {} failed, memory and {} diverge: {}",
                action, self._persistence.path, e,
            )
            raise AppError(
                errcode=AppErrorCode.E_PERSISTENCE_FAILURE,
                errmesg=f"Couldn't save state after {action}",
                status_code=HttpStatusCode.INTERNAL_SERVER_ERROR,
            ) from e

    # ------------------------------------------------------------------
    # Authorization
    # ------------------------------------------------------------------
    async def auth(self, app: str, name: str, key: str) -> tuple[str, AuthDecision]:
        """Decide whether `key` may publish on app/name.

        The first record (insertion order) matching all three values decides.
        Its id is returned for every outcome except UNAUTHORIZED, where it is "".
        """
        async with self._lock.read():
            for stream in self._state.streams:
                if stream.application != app or stream.name != name or stream.auth_key != key:
                    continue

                if stream.blocked:
                    return stream.id, AuthDecision.BLOCKED
                if stream.active:
                    return stream.id, AuthDecision.GRANTED
                if self._is_active_by_app_name(app, name, exclude_id=stream.id):
                    return stream.id, AuthDecision.BUSY
                return stream.id, AuthDecision.GRANTED

        return "", AuthDecision.UNAUTHORIZED

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    async def set_active(self, id: str) -> None:
        async with self._lock.write():
            stream = self._find(id)
            if stream is None:
                raise _not_found(id)
            stream.active = True
            await self._persist(f"activating {id} ({stream.application}/{stream.name})")

    async def set_inactive(self, app: str, name: str) -> int:
        """Clear the active flag on every record of app/name.

        The relay reports unpublish per app/name, not per key, so all records
        sharing the slot are released.

        Returns:
            Number of records that were active
        """
        async with self._lock.write():
            changed = 0
            for stream in self._by_app_name(app, name):
                if stream.active:
                    stream.active = False
                    changed += 1

            if not changed:
                raise AppError(
                    errcode=AppErrorCode.E_NO_ACTIVE_STREAM,
                    errmesg=f"No active stream for {app}/{name}",
                    status_code=HttpStatusCode.NOT_FOUND,
                )

            await self._persist(f"deactivating {app}/{name}")
            return changed

    async def set_blocked(self, id: str, state: bool) -> StreamRecord:
        """Set the blocked flag. Does not drop a running publisher."""
        async with self._lock.write():
            stream = self._find(id)
            if stream is None:
                raise _not_found(id)
            stream.blocked = state
            await self._persist(f"{'blocking' if state else 'unblocking'} {id}")
            return stream.model_copy()

    async def add_stream(self, record: StreamRecord) -> StreamRecord:
        """Insert a copy of `record` under a freshly generated id."""
        async with self._lock.write():
            id = new_stream_id()
            while id in self._issued_ids:
                id = new_stream_id()

            try:
                stream = StreamRecord.model_validate(record.model_dump() | {"id": id})
            except ValidationError as e:
                raise AppError(
                    errcode=AppErrorCode.E_INVALID_REQUEST,
                    errmesg=f"Invalid stream record: {e}",
                    status_code=HttpStatusCode.BAD_REQUEST,
                ) from e

            self._issued_ids.add(id)
            self._state.streams.append(stream)
            await self._persist(f"adding {id} ({stream.application}/{stream.name})")
            return stream.model_copy()

    async def remove_stream(self, id: str) -> StreamRecord:
        async with self._lock.write():
            stream = self._find(id)
            if stream is None:
                raise _not_found(id)
            self._state.streams = [s for s in self._state.streams if s.id != id]
            await self._persist(f"removing {id} ({stream.application}/{stream.name})")
            return stream

    async def set_ctrl_url(self, url: str) -> None:
        async with self._lock.write():
            self._state.ctrl_url = url
            await self._persist("updating control url")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    async def get_ctrl_url(self) -> str:
        async with self._lock.read():
            return self._state.ctrl_url

    async def get_stream_by_id(self, id: str) -> StreamRecord:
        async with self._lock.read():
            stream = self._find(id)
            if stream is None:
                raise _not_found(id)
            return stream.model_copy()

    async def get_app_name_by_id(self, id: str) -> tuple[str, str]:
        async with self._lock.read():
            stream = self._find(id)
            if stream is None:
                raise _not_found(id)
            return stream.application, stream.name

    async def get_publisher_state(self, id: str) -> tuple[StreamRecord, bool]:
        """Return a copy of the record and whether another record on its
        app/name is active, read in one shared scope."""
        async with self._lock.read():
            stream = self._find(id)
            if stream is None:
                raise _not_found(id)
            superseded = self._is_active_by_app_name(stream.application, stream.name, exclude_id=id)
            return stream.model_copy(), superseded

    async def is_active_by_app_name(self, app: str, name: str) -> bool:
        async with self._lock.read():
            return self._is_active_by_app_name(app, name)

    async def list_streams(self) -> list[StreamRecord]:
        async with self._lock.read():
            return [s.model_copy() for s in self._state.streams]

    async def expired_stream_ids(self, now: int) -> list[str]:
        """Ids of records with a real expiry at or before `now`."""
        async with self._lock.read():
            return [s.id for s in self._state.streams if s.is_expired(now)]
