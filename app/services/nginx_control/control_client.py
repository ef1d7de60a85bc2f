import httpx
from loguru import logger

from app.domain.streams.store import StreamStore
from app.schemas import DropOutcome
from app.services.nginx_control.control_schemas import DropPublisherQuery, DropResult
from app.utils.app_errors import AppError

DROP_PUBLISHER_PATH = "/control/drop/publisher"


class NginxControlClient:
    """Drops publishers through the nginx-rtmp control module.

    The control URL is read from the registry on every call, so an empty URL
    turns every drop into a NOT_CONFIGURED no-op.
    """

    def __init__(
        self,
        store: StreamStore,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.store = store
        self.timeout = timeout
        self._transport = transport

    async def drop_publisher(self, stream_id: str) -> DropResult:
        """Ask the relay to disconnect whoever publishes on the stream's app/name.

        The request is only sent when this record holds the slot. On a 200
        every record of the app/name is marked inactive.

        Raises:
            AppError: E_STREAM_NOT_FOUND if the id is unknown
        """
        ctrl_url = await self.store.get_ctrl_url()
        if not ctrl_url:
            logger.debug("Control URL not set, not dropping publisher of {}", stream_id)
            return DropResult(outcome=DropOutcome.NOT_CONFIGURED, stream_id=stream_id)

        stream, superseded = await self.store.get_publisher_state(stream_id)
        app, name = stream.application, stream.name

        if not stream.active:
            return DropResult(
                outcome=DropOutcome.NOT_ACTIVE, stream_id=stream_id, application=app, name=name
            )

        if superseded:
            logger.info(
                "Not dropping publisher for {}/{}: access for another stream id was granted",
                app, name,
            )
            return DropResult(
                outcome=DropOutcome.SUPERSEDED, stream_id=stream_id, application=app, name=name
            )

        url = f"{ctrl_url.rstrip('/')}{DROP_PUBLISHER_PATH}"
        query = DropPublisherQuery(app=app, name=name)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(url, params=query.model_dump())
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning(f"nginx-rtmp control request for {app}/{name} failed: {e!r}")
            return DropResult(
                outcome=DropOutcome.UNREACHABLE,
                stream_id=stream_id,
                application=app,
                name=name,
                error=repr(e),
            )

        if response.status_code != httpx.codes.OK:
            logger.warning(
                f"nginx-rtmp control request for {app}/{name} denied: "
                f"{response.status_code} {response.reason_phrase}"
            )
            return DropResult(
                outcome=DropOutcome.DENIED,
                stream_id=stream_id,
                application=app,
                name=name,
                status_code=response.status_code,
            )

        try:
            await self.store.set_inactive(app, name)
        except AppError as e:
            # unpublish callback may have landed first
            logger.warning(f"Dropped {app}/{name} but couldn't mark it inactive: {e.errmesg}")

        logger.info(f"Dropped stream {stream_id} {app}/{name}")
        return DropResult(outcome=DropOutcome.DROPPED, stream_id=stream_id, application=app, name=name)
