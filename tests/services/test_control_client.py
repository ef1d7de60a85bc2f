"""Tests for the nginx-rtmp control client."""

import httpx
import pytest

from app.domain.streams.store import StreamStore
from app.schemas import DropOutcome
from app.services.nginx_control.control_client import NginxControlClient
from app.utils.app_errors import AppError, AppErrorCode
from tests.fixtures.stream_fixtures import RELAY_URL, FakeRelay


@pytest.fixture
async def configured(store: StreamStore) -> StreamStore:
    await store.set_ctrl_url(RELAY_URL)
    return store


class TestDropPublisher:
    """Tests for drop_publisher."""

    async def test_not_configured_is_noop(
        self, store: StreamStore, control: NginxControlClient, relay: FakeRelay
    ):
        """Without a control url nothing is resolved or sent."""
        result = await control.drop_publisher("st_unknown")

        assert result.outcome is DropOutcome.NOT_CONFIGURED
        assert relay.requests == []

    async def test_unknown_id(self, configured: StreamStore, control: NginxControlClient):
        """An unknown id raises not found."""
        with pytest.raises(AppError) as exc_info:
            await control.drop_publisher("st_unknown")

        assert exc_info.value.errcode == AppErrorCode.E_STREAM_NOT_FOUND

    async def test_inactive_record(
        self, configured: StreamStore, control: NginxControlClient, relay: FakeRelay, make_record
    ):
        """Nothing to drop for an inactive record."""
        added = await configured.add_stream(make_record())

        result = await control.drop_publisher(added.id)

        assert result.outcome is DropOutcome.NOT_ACTIVE
        assert result.outcome.not_applicable
        assert relay.requests == []

    async def test_superseded_record(
        self, configured: StreamStore, control: NginxControlClient, relay: FakeRelay, make_record
    ):
        """Another active record on the slot means no drop is sent."""
        first = await configured.add_stream(make_record(key="k1"))
        second = await configured.add_stream(make_record(key="k2"))
        await configured.set_active(first.id)
        await configured.set_active(second.id)

        result = await control.drop_publisher(first.id)

        assert result.outcome is DropOutcome.SUPERSEDED
        assert relay.requests == []

    async def test_dropped_marks_slot_inactive(
        self, configured: StreamStore, control: NginxControlClient, relay: FakeRelay, make_record
    ):
        """A 200 from the relay releases every record of the slot."""
        added = await configured.add_stream(make_record(name="cam 1"))
        await configured.set_active(added.id)

        result = await control.drop_publisher(added.id)

        assert result.dropped
        assert not (await configured.get_stream_by_id(added.id)).active
        request = relay.requests[0]
        assert request.method == "GET"
        assert request.url.path == "/control/drop/publisher"
        assert relay.drops == [("live", "cam 1")]

    async def test_denied_carries_status(
        self, configured: StreamStore, control: NginxControlClient, relay: FakeRelay, make_record
    ):
        """A non-200 answer is reported with its status and changes nothing."""
        relay.status_code = 404
        added = await configured.add_stream(make_record())
        await configured.set_active(added.id)

        result = await control.drop_publisher(added.id)

        assert result.outcome is DropOutcome.DENIED
        assert result.status_code == 404
        assert (await configured.get_stream_by_id(added.id)).active

    async def test_unreachable_relay(
        self, configured: StreamStore, control: NginxControlClient, relay: FakeRelay, make_record
    ):
        """Transport failures are reported, not raised."""
        relay.error = httpx.ConnectError("connection refused")
        added = await configured.add_stream(make_record())
        await configured.set_active(added.id)

        result = await control.drop_publisher(added.id)

        assert result.outcome is DropOutcome.UNREACHABLE
        assert "connection refused" in result.error
        assert (await configured.get_stream_by_id(added.id)).active

    async def test_timeout_is_unreachable(
        self, configured: StreamStore, control: NginxControlClient, relay: FakeRelay, make_record
    ):
        """A relay that times out is reported as unreachable."""
        relay.error = httpx.ReadTimeout("timed out")
        added = await configured.add_stream(make_record())
        await configured.set_active(added.id)

        result = await control.drop_publisher(added.id)

        assert result.outcome is DropOutcome.UNREACHABLE
