"""Stream service: the operations the RTMP callbacks and the admin API call."""

import shlex

import orjson
from loguru import logger

from app.schemas import AuthDecision, DropOutcome, StreamRecord
from app.services.nginx_control.control_client import NginxControlClient
from app.services.nginx_control.control_schemas import DropResult
from app.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

from .expiry_spec import format_expiry, parse_expiry
from .store import StreamStore
from .stream_models import PublishResult, StreamCreateParams


class StreamService:
    """Orchestrates registry mutations and publisher drops."""

    def __init__(
        self,
        store: StreamStore,
        control: NginxControlClient,
        applications: list[str] | None = None,
    ):
        self.store = store
        self.control = control
        self.applications = applications or []

    async def publish(self, app: str, name: str, key: str) -> PublishResult:
        """Authorize a publisher and mark its record active on success.

        A failed state write after a grant is logged but does not revoke the
        grant: the relay is already told to accept the stream.
        """
        stream_id, decision = await self.store.auth(app, name, key)

        if decision is AuthDecision.UNAUTHORIZED:
            logger.info(f"Authentication for {app}/{name} failed. Access unauthorized")
            return PublishResult(stream_id=stream_id, decision=decision)
        if decision is not AuthDecision.GRANTED:
            logger.info(f"Publish for stream {stream_id} on {app}/{name} denied: {decision}")
            return PublishResult(stream_id=stream_id, decision=decision)

        try:
            await self.store.set_active(stream_id)
        except AppError as e:
            if e.errcode == AppErrorCode.E_STREAM_NOT_FOUND:
                logger.info(f"Stream {stream_id} on {app}/{name} removed while publishing")
                return PublishResult(stream_id="", decision=AuthDecision.UNAUTHORIZED)
            logger.error(f"Publish for stream {stream_id} on {app}/{name} granted, but {e.errmesg}")

        logger.info(f"Authentication for stream {stream_id} on {app}/{name} succeeded. Publish ok")
        return PublishResult(stream_id=stream_id, decision=decision)

    async def unpublish(self, app: str, name: str) -> int:
        """Release the app/name slot.

        Raises:
            AppError: E_NO_ACTIVE_STREAM if nothing was publishing there
        """
        count = await self.store.set_inactive(app, name)
        logger.info(f"Unpublish {app}/{name} ok")
        return count

    async def add_stream(self, params: StreamCreateParams) -> StreamRecord:
        if self.applications and params.application not in self.applications:
            raise AppError(
                errcode=AppErrorCode.E_INVALID_REQUEST,
                errmesg=f"Unknown application '{params.application}'",
                status_code=HttpStatusCode.BAD_REQUEST,
            )

        record = StreamRecord(
            application=params.application,
            name=params.name,
            auth_key=params.auth_key,
            auth_expire=parse_expiry(params.auth_expire),
            notes=params.notes,
            blocked=params.blocked,
        )
        stream = await self.store.add_stream(record)
        logger.info(f"New stream added: {stream.id} ({stream.application}/{stream.name})")
        return stream

    async def remove_stream(self, stream_id: str) -> StreamRecord:
        """Drop the publisher if it is live, then delete the record."""
        stream = await self.store.get_stream_by_id(stream_id)

        if stream.active:
            self._log_drop(await self.control.drop_publisher(stream_id))

        removed = await self.store.remove_stream(stream_id)
        logger.info(f"Removed stream {stream_id} ({removed.application}/{removed.name})")
        return removed

    async def set_blocked(self, stream_id: str, blocked: bool) -> StreamRecord:
        """Set the blocked flag; blocking also drops a live publisher.

        The drop is sent on every block request, so a publisher that got
        through before the flag was set is still disconnected.
        """
        stream = await self.store.set_blocked(stream_id, blocked)

        if blocked:
            self._log_drop(await self.control.drop_publisher(stream_id))

        action = "blocked" if blocked else "unblocked"
        logger.info(f"Stream {stream_id} ({stream.application}/{stream.name}) {action}")
        return stream

    async def list_streams(self) -> list[StreamRecord]:
        return await self.store.list_streams()

    async def dump_script(self) -> str:
        """Bash script that re-creates every record through the admin API."""
        lines = [
            "#!/bin/bash",
            "",
            "if [ $# -lt 1 ]; then",
            '\techo "Usage: $0 admin_url [api_key]"',
            "\texit 1",
            "fi",
            "",
            "url=${1}",
            "key=${2:-}",
            "",
        ]

        for stream in await self.store.list_streams():
            body = {
                "application": stream.application,
                "name": stream.name,
                "auth_key": stream.auth_key,
                "auth_expire": format_expiry(stream.auth_expire),
                "notes": stream.notes,
                "blocked": stream.blocked,
            }
            payload = shlex.quote(orjson.dumps(body).decode("utf-8"))
            lines.append(
                'curl -s -o /dev/null -H "X-Api-Key: ${key}" '
                f"-H 'Content-Type: application/json' -d {payload} ${{url}}/admin/streams"
            )

        return "\n".join(lines) + "\n"

    @staticmethod
    def _log_drop(result: DropResult) -> None:
        if result.outcome.not_applicable or result.dropped:
            logger.info(result.describe())
        elif result.outcome is DropOutcome.NOT_CONFIGURED:
            logger.debug(result.describe())
        else:
            logger.warning(result.describe())
