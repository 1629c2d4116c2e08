"""Pytest fixtures for pmv-cli tests."""
import asyncio
import socket
import threading

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer
from yarl import URL

from pmv_cli.api.client import SESSION_HEADER_NAME, VaultAPIClient
from pmv_cli.models.config import ClientSettings
from pmv_cli.utils.vault_uri import LoginURI, SessionURI


class RecordingObserver:
    """Progress observer that keeps every event it receives."""

    def __init__(self):
        self.events = []

    def progress_start(self):
        self.events.append(("start",))

    def progress_update(self, loaded, total):
        self.events.append(("update", loaded, total))

    def progress_finish(self):
        self.events.append(("finish",))

    @property
    def updates(self):
        return [(e[1], e[2]) for e in self.events if e[0] == "update"]

    def assert_well_formed(self):
        """One start first, one finish last, non-decreasing updates in between."""
        assert self.events[0] == ("start",)
        assert self.events[-1] == ("finish",)
        assert self.events.count(("start",)) == 1
        assert self.events.count(("finish",)) == 1
        loaded = [u[0] for u in self.updates]
        assert loaded == sorted(loaded)


class FakeVault:
    """In-memory vault server speaking the subset of the API the client uses."""

    def __init__(self):
        self.users = {"alice": "secret123"}
        self.sessions = set()
        self.requests = []
        self.login_bodies = []
        self.logout_count = 0
        self.logout_status = 200
        self.media = {}
        self.media_sequences = {}
        self.albums = {}
        self.task_sequences = {}
        self.assets = {}
        self.uploads = []
        self.confirmations = []
        self.next_media_id = 100
        self._token_counter = 0

    def build_app(self) -> web.Application:
        @web.middleware
        async def record(request, handler):
            self.requests.append((request.method, request.path))
            return await handler(request)

        app = web.Application(middlewares=[record])
        app.router.add_post("/api/auth/login", self.login)
        app.router.add_post("/api/auth/logout", self.logout)
        app.router.add_get("/api/media/{id}", self.get_media)
        app.router.add_post("/api/media/{id}/edit/thumbnail", self.upload_thumbnail)
        app.router.add_post("/api/media/{id}/delete", self.delete_media)
        app.router.add_get("/api/albums/{id}", self.get_album)
        app.router.add_post("/api/albums/{id}/thumbnail", self.upload_thumbnail)
        app.router.add_get("/api/tasks/{id}", self.get_task)
        app.router.add_post("/api/upload", self.upload_media)
        app.router.add_get("/assets/{name}", self.get_asset)
        return app

    def _authorized(self, request) -> bool:
        token = request.headers.get(SESSION_HEADER_NAME) or request.query.get(
            "session_token"
        )
        return token in self.sessions

    @staticmethod
    def _error(status, code, message):
        return web.json_response({"code": code, "message": message}, status=status)

    async def login(self, request):
        body = await request.json()
        self.login_bodies.append(body)
        if self.users.get(body.get("username")) != body.get("password"):
            return self._error(401, "INVALID_CREDENTIALS", "Invalid credentials")
        self._token_counter += 1
        token = f"token-{self._token_counter}"
        self.sessions.add(token)
        return web.json_response({"session_id": token, "vault_fingerprint": "fp"})

    async def logout(self, request):
        self.logout_count += 1
        if not self._authorized(request):
            return web.Response(status=401)
        if self.logout_status != 200:
            return web.Response(status=self.logout_status)
        self.sessions.discard(request.headers.get(SESSION_HEADER_NAME))
        return web.Response(text="")

    async def get_media(self, request):
        if not self._authorized(request):
            return web.Response(status=401)
        media_id = int(request.match_info["id"])
        sequence = self.media_sequences.get(media_id)
        if sequence:
            payload = sequence.pop(0) if len(sequence) > 1 else sequence[0]
            return web.json_response(payload)
        if media_id in self.media:
            return web.json_response(self.media[media_id])
        return self._error(404, "NOT_FOUND", "Media not found")

    async def delete_media(self, request):
        if not self._authorized(request):
            return web.Response(status=401)
        password = request.headers.get("x-auth-confirmation-pw")
        if password is None:
            return self._error(
                403, "AUTH_CONFIRMATION_REQUIRED_PW", "Confirmation required"
            )
        self.confirmations.append(password)
        return web.Response(text="")

    async def get_album(self, request):
        if not self._authorized(request):
            return web.Response(status=401)
        album_id = int(request.match_info["id"])
        if album_id in self.albums:
            return web.json_response(self.albums[album_id])
        return self._error(404, "NOT_FOUND", "Album not found")

    async def get_task(self, request):
        if not self._authorized(request):
            return web.Response(status=401)
        task_id = int(request.match_info["id"])
        sequence = self.task_sequences.get(task_id)
        if not sequence:
            return self._error(404, "NOT_FOUND", "Task not found")
        return web.json_response(sequence.pop(0))

    async def _read_upload(self, request):
        reader = await request.multipart()
        part = await reader.next()
        data = await part.read()
        upload = {
            "path": request.path,
            "query": dict(request.query),
            "field": part.name,
            "filename": part.filename,
            "content_type": part.headers.get("Content-Type"),
            "data": bytes(data),
        }
        self.uploads.append(upload)
        return upload

    async def upload_media(self, request):
        if not self._authorized(request):
            return web.Response(status=401)
        upload = await self._read_upload(request)
        album = upload["query"].get("album")
        if album is not None and int(album) not in self.albums:
            return self._error(404, "ALBUM_NOT_FOUND", "Album not found")
        media_id = self.next_media_id
        self.next_media_id += 1
        return web.json_response({"media_id": media_id})

    async def upload_thumbnail(self, request):
        if not self._authorized(request):
            return web.Response(status=401)
        upload = await self._read_upload(request)
        return web.json_response({"url": f"/assets/{upload['filename']}"})

    async def get_asset(self, request):
        if not self._authorized(request):
            return web.Response(status=401)
        name = request.match_info["name"]
        if name not in self.assets:
            return web.Response(status=404)
        return web.Response(body=self.assets[name])


class ThreadedServer:
    """Runs an aiohttp application on its own event loop in a background thread."""

    def __init__(self, app: web.Application):
        self._app = app
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._loop.run_forever, daemon=True)
        self._runner = None
        self._sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._sock.bind(("127.0.0.1", 0))
        self.port = self._sock.getsockname()[1]

    @property
    def url(self) -> str:
        return f"http://127.0.0.1:{self.port}"

    async def _start(self):
        self._runner = web.AppRunner(self._app)
        await self._runner.setup()
        await web.SockSite(self._runner, self._sock).start()

    def start(self):
        self._thread.start()
        asyncio.run_coroutine_threadsafe(self._start(), self._loop).result(timeout=10)

    def stop(self):
        if self._runner is not None:
            asyncio.run_coroutine_threadsafe(
                self._runner.cleanup(), self._loop
            ).result(timeout=10)
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=10)
        self._loop.close()


@pytest.fixture
def observer():
    """Returns a fresh recording observer."""
    return RecordingObserver()


@pytest.fixture
def fake_vault():
    """Returns an empty fake vault."""
    return FakeVault()


@pytest.fixture
async def vault_server(fake_vault):
    """Serves the fake vault on the test's event loop."""
    server = TestServer(fake_vault.build_app())
    await server.start_server()
    yield server
    await server.close()


@pytest.fixture
def settings():
    """Settings with no progress sampling delay and no polling delay."""
    return ClientSettings(progress_interval=0.0, poll_interval=0.0)


@pytest.fixture
async def api_client(settings):
    client = VaultAPIClient(settings)
    yield client
    await client.close()


@pytest.fixture
def session_uri(vault_server, fake_vault):
    """A session URI holding a token the fake vault accepts."""
    fake_vault.sessions.add("test-session")
    return SessionURI(base_url=vault_server.make_url("/"), session="test-session")


@pytest.fixture
def login_uri(vault_server):
    return LoginURI(
        base_url=vault_server.make_url("/"), username="alice", password="secret123"
    )


@pytest.fixture
def closed_port_uri():
    """A session URI pointing at a port nobody listens on."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
    return SessionURI(base_url=URL(f"http://127.0.0.1:{port}/"), session="s")


@pytest.fixture
def threaded_vault(fake_vault):
    """Serves the fake vault from a background thread, for synchronous CLI tests."""
    server = ThreadedServer(fake_vault.build_app())
    server.start()
    yield server
    server.stop()
