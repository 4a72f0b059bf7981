"""End-to-end loader runs against an in-process aiohttp upstream."""

from __future__ import annotations

import asyncio
from collections import Counter
from unittest.mock import MagicMock

import aiohttp
import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from chatmedia.runtime.media.delivery import Origin, Phase, Status
from chatmedia.runtime.media.errors import FailureReason, TransportErrorKind
from chatmedia.runtime.media.hosts import MediaHosts
from chatmedia.runtime.media.kinds import MediaKind, TransportClass
from chatmedia.runtime.media.loader import MediaLoader
from chatmedia.runtime.media.message import MessageMedia, prepare

JPEG = b"\xff\xd8\xff\xe0" + b"\x00" * 60
OGG = b"OggS\x00\x02" + b"\x00" * 58
BIG_JPEG = JPEG + bytes(range(256)) * 8192

LOCAL_HOSTS = MediaHosts(
    primary_hosts=("127.0.0.1",),
    messaging_hosts=("127.0.0.1",),
    secondary_markers=("minio.invalid",),
)
ENC_HOSTS = MediaHosts(
    primary_hosts=("primary.invalid",),
    messaging_hosts=("127.0.0.1",),
    secondary_markers=("minio.invalid",),
)


def _upstream(hits: Counter, *, relay_status: int = 200) -> web.Application:
    async def blocked(req: web.Request) -> web.Response:
        hits[req.path] += 1
        return web.Response(status=403)

    async def image(req: web.Request) -> web.Response:
        hits[req.path] += 1
        return web.Response(body=JPEG, content_type="image/jpeg")

    async def media_relay(req: web.Request) -> web.Response:
        hits[req.path] += 1
        if relay_status != 200:
            return web.json_response({"status": "error", "message": "nope"}, status=relay_status)
        return web.Response(body=JPEG, content_type="image/jpeg")

    async def decrypt_relay(req: web.Request) -> web.Response:
        hits[req.path] += 1
        return web.Response(body=OGG, content_type="audio/ogg")

    async def big(req: web.Request) -> web.Response:
        hits[req.path] += 1
        return web.Response(body=BIG_JPEG, content_type="image/jpeg")

    async def voice(req: web.Request) -> web.Response:
        hits[req.path] += 1
        return web.Response(body=OGG, content_type="audio/ogg")

    async def slow(req: web.Request) -> web.Response:
        hits[req.path] += 1
        await asyncio.sleep(2)
        return web.Response(body=JPEG)

    app = web.Application()
    app.router.add_get("/o/blocked.jpg", blocked)
    app.router.add_get("/o/ok.jpg", image)
    app.router.add_get("/files/thing.xyz", blocked)
    app.router.add_get("/media-relay", media_relay)
    app.router.add_get("/decrypt-relay", decrypt_relay)
    app.router.add_get("/slow.jpg", slow)
    app.router.add_get("/big.jpg", big)
    app.router.add_get("/voice.ogg", voice)
    return app


async def _serve(app: web.Application) -> TestServer:
    server = TestServer(app)
    await server.start_server()
    return server


@pytest.fixture()
def hits() -> Counter:
    return Counter()


@pytest_asyncio.fixture
async def upstream(hits: Counter):
    server = await _serve(_upstream(hits))
    yield server
    await server.close()


@pytest_asyncio.fixture
async def failing_upstream(hits: Counter):
    server = await _serve(_upstream(hits, relay_status=502))
    yield server
    await server.close()


def _loader(session: aiohttp.ClientSession, server: TestServer) -> MediaLoader:
    return MediaLoader(session, base_url=str(server.make_url("/")), timeout=5, probe_timeout_ms=1000)


class TestInline:
    @pytest.mark.asyncio
    async def test_webp_data_url_never_touches_network(self) -> None:
        session = MagicMock(spec=aiohttp.ClientSession)
        view = prepare(MessageMedia("data:image/webp;base64,AAAA"))
        assert view.kind is MediaKind.sticker
        assert view.resolution.transport is TransportClass.inline

        result = await MediaLoader(session).load(view)
        assert result.state.phase is Phase.ready
        assert result.data == b"\x00\x00\x00"
        assert result.content_type == "image/webp"
        session.get.assert_not_called()

    @pytest.mark.asyncio
    async def test_undecodable_payload_fails(self) -> None:
        session = MagicMock(spec=aiohttp.ClientSession)
        view = prepare(MessageMedia("data:image/png;base64,@@@"))
        result = await MediaLoader(session).load(view)
        assert result.state.phase is Phase.failed
        assert result.state.attempts[0].error.kind is TransportErrorKind.decode
        assert not result.ok


class TestRelayFallback:
    @pytest.mark.asyncio
    async def test_cors_then_relay(self, upstream: TestServer, hits: Counter) -> None:
        url = str(upstream.make_url("/o/blocked.jpg")) + "?alt=media"
        view = prepare(MessageMedia(url), hosts=LOCAL_HOSTS)
        async with aiohttp.ClientSession() as session:
            result = await _loader(session, upstream).load(view)

        assert result.ok
        assert result.data == JPEG
        assert result.state.status is Status.ready
        direct, relay = result.state.attempts
        assert direct.origin is Origin.direct
        assert direct.error.kind is TransportErrorKind.cors
        assert relay.origin is Origin.relay
        assert relay.url.startswith("/media-relay?url=")
        assert hits["/o/blocked.jpg"] == 1
        assert hits["/media-relay"] == 1

    @pytest.mark.asyncio
    async def test_relay_failure_is_final(self, failing_upstream: TestServer, hits: Counter) -> None:
        url = str(failing_upstream.make_url("/o/blocked.jpg")) + "?alt=media"
        view = prepare(MessageMedia(url), hosts=LOCAL_HOSTS)
        async with aiohttp.ClientSession() as session:
            result = await _loader(session, failing_upstream).load(view)

        assert result.state.phase is Phase.failed
        assert result.state.failure is FailureReason.relay_failed
        assert len(result.state.attempts) == 2
        assert result.state.attempts[1].error.kind is TransportErrorKind.http_status
        assert hits["/o/blocked.jpg"] == 1
        assert hits["/media-relay"] == 1

    @pytest.mark.asyncio
    async def test_direct_success(self, upstream: TestServer, hits: Counter) -> None:
        url = str(upstream.make_url("/o/ok.jpg")) + "?alt=media"
        view = prepare(MessageMedia(url), hosts=LOCAL_HOSTS)
        async with aiohttp.ClientSession() as session:
            result = await _loader(session, upstream).load(view)
        assert result.content_type == "image/jpeg"
        assert len(result.state.attempts) == 1
        assert hits["/media-relay"] == 0

    @pytest.mark.asyncio
    async def test_generic_failure_has_no_relay(self, upstream: TestServer, hits: Counter) -> None:
        url = str(upstream.make_url("/files/thing.xyz"))
        view = prepare(MessageMedia(url))
        assert view.kind is MediaKind.document
        async with aiohttp.ClientSession() as session:
            result = await _loader(session, upstream).load(view)
        assert result.state.phase is Phase.failed
        assert result.state.failure is FailureReason.direct_failed
        assert len(result.state.attempts) == 1
        assert sum(hits.values()) == 1


class TestEncryptedAudio:
    @pytest.mark.asyncio
    async def test_relay_only_and_playable(self, upstream: TestServer, hits: Counter) -> None:
        url = str(upstream.make_url("/v/t62/voice.enc"))
        view = prepare(MessageMedia(url, kind=MediaKind.audio), hosts=ENC_HOSTS, instance="sales")
        assert view.resolution.transport is TransportClass.encrypted_source
        async with aiohttp.ClientSession() as session:
            result = await _loader(session, upstream).load(view)

        assert result.ok
        assert result.content_type == "audio/ogg"
        assert [a.origin for a in result.state.attempts] == [Origin.relay]
        assert result.probe is not None
        assert result.probe.playable is True
        assert "/v/t62/voice.enc" not in hits
        assert hits["/decrypt-relay"] == 1


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancel_discards_delivery(self, upstream: TestServer) -> None:
        view = prepare(MessageMedia(str(upstream.make_url("/slow.jpg"))))
        async with aiohttp.ClientSession() as session:
            task = asyncio.create_task(_loader(session, upstream).load(view))
            await asyncio.sleep(0.2)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
        assert view.delivery.discarded
        assert view.state.phase is Phase.loading_direct


class TestLargeBodies:
    @pytest.mark.asyncio
    async def test_multi_chunk_body_read_to_end(self, upstream: TestServer) -> None:
        view = prepare(MessageMedia(str(upstream.make_url("/big.jpg"))))
        async with aiohttp.ClientSession() as session:
            result = await _loader(session, upstream).load(view)
        assert result.state.phase is Phase.ready
        assert len(BIG_JPEG) > 2 * 1024 * 1024
        assert result.data == BIG_JPEG

    @pytest.mark.asyncio
    async def test_oversized_body_fails(self, upstream: TestServer) -> None:
        view = prepare(MessageMedia(str(upstream.make_url("/big.jpg"))))
        async with aiohttp.ClientSession() as session:
            loader = MediaLoader(session, timeout=5, max_bytes=1024 * 1024)
            result = await loader.load(view)
        assert result.state.phase is Phase.failed
        assert not result.ok
        assert result.state.attempts[0].error.kind is TransportErrorKind.network


class TestDirectAudio:
    @pytest.mark.asyncio
    async def test_direct_target_checked_before_fetch(self, upstream: TestServer, hits: Counter) -> None:
        view = prepare(MessageMedia(str(upstream.make_url("/voice.ogg"))))
        assert view.kind is MediaKind.audio
        async with aiohttp.ClientSession() as session:
            result = await _loader(session, upstream).load(view)
        assert result.ok
        assert result.probe.playable is True
        assert hits["/voice.ogg"] == 2
