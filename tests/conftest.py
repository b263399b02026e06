"""Pytest configuration helpers.

This conftest ensures the ``backend`` directory is on `sys.path` so tests can
import the `sora_studio` package regardless of how pytest is invoked, and
provides the fakes shared by the suites: a manual-clock scheduler, a scripted
``/videos`` API behind ``httpx.MockTransport``, and in-memory test images.
"""
import io
import itertools
import os
import re
import sys

import httpx
import pytest
from PIL import Image


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "backend"))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

BASE_URL = "https://api.test/v1"


@pytest.fixture
def anyio_backend():
    return "asyncio"


class FakeScheduler:
    """Scheduler with a manual clock. ``advance`` runs due callbacks in order."""

    def __init__(self):
        self.now = 0.0
        self._timers = {}
        self._ids = itertools.count()
        self.scheduled = 0
        self.cancelled = 0

    def schedule(self, delay, callback):
        handle = next(self._ids)
        self._timers[handle] = (self.now + delay, callback)
        self.scheduled += 1
        return handle

    def cancel(self, handle):
        if self._timers.pop(handle, None) is not None:
            self.cancelled += 1

    @property
    def pending(self):
        return len(self._timers)

    async def advance(self, seconds):
        target = self.now + seconds
        while True:
            due = sorted(
                (when, handle) for handle, (when, _) in self._timers.items() if when <= target
            )
            if not due:
                break
            when, handle = due[0]
            self.now = when
            _, callback = self._timers.pop(handle)
            await callback()
        self.now = target


class FakeVideoAPI:
    """Scripted stand-in for the remote /videos API.

    ``statuses`` is consumed one entry per status fetch (the last entry
    repeats). Entries may be a dict (200 JSON body), an ``httpx.Response``,
    or an exception instance to raise.
    """

    def __init__(self, statuses=None, video_id="vid_123", create_response=None, content=None):
        self.video_id = video_id
        self.statuses = list(statuses or [{"id": video_id, "status": "completed"}])
        self.create_response = create_response
        self.content = content or {
            "video": b"\x00\x00\x00\x18ftypmp42fake-video",
            "thumbnail": b"RIFF\x00\x00\x00\x00WEBPfake-thumb",
            "spritesheet": b"\xff\xd8\xff\xe0fake-sprites",
        }
        self.requests = []
        self._status_calls = 0

    def __call__(self, request):
        request.read()
        self.requests.append(request)
        path = request.url.path

        if request.method == "POST" and path.endswith("/videos"):
            if isinstance(self.create_response, Exception):
                raise self.create_response
            return self.create_response or httpx.Response(
                200, json={"id": self.video_id, "status": "queued"},
            )

        if request.method == "GET" and path.endswith("/content"):
            variant = request.url.params.get("variant", "video")
            return httpx.Response(200, content=self.content[variant])

        if request.method == "GET":
            entry = self.statuses[min(self._status_calls, len(self.statuses) - 1)]
            self._status_calls += 1
            if isinstance(entry, Exception):
                raise entry
            if isinstance(entry, httpx.Response):
                return entry
            return httpx.Response(200, json=entry)

        return httpx.Response(404, json={"error": {"message": "not found"}})

    def count(self, method, suffix=""):
        return sum(
            1 for r in self.requests
            if r.method == method and r.url.path.endswith(suffix)
        )

    @property
    def status_fetches(self):
        return sum(
            1 for r in self.requests
            if r.method == "GET" and not r.url.path.endswith("/content")
        )

    def client(self):
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


def multipart_fields(request):
    """Parse a multipart request body into ``{name: bytes}``."""
    boundary = re.search(r"boundary=([^;]+)", request.headers["content-type"]).group(1)
    fields = {}
    for part in request.content.split(b"--" + boundary.encode()):
        if b"\r\n\r\n" not in part:
            continue
        head, _, body = part.partition(b"\r\n\r\n")
        match = re.search(rb'; name="([^"]+)"', head)
        if match:
            fields[match.group(1).decode()] = body[:-2] if body.endswith(b"\r\n") else body
    return fields


def make_image(width, height, fmt="PNG", color=(200, 30, 30), mode="RGB"):
    img = Image.new(mode, (width, height), color=color)
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def scheduler():
    return FakeScheduler()
