import httpx
import pytest

from conftest import BASE_URL, FakeVideoAPI, multipart_fields
from sora_studio.errors import RemoteError, TransportError, ValidationError
from sora_studio.schemas.generation import (
    Credentials,
    GenerationRequest,
    ReferenceImage,
    VideoModel,
)
from sora_studio.services.job_submitter import JobSubmitter

pytestmark = pytest.mark.anyio

CREDS = Credentials(api_key="sk-test-key")


def _submitter(api):
    return JobSubmitter(base_url=BASE_URL, http_client=api.client())


async def test_empty_prompt_is_rejected_before_any_request():
    api = FakeVideoAPI()

    with pytest.raises(ValidationError) as exc_info:
        await _submitter(api).submit(GenerationRequest(prompt=""), CREDS)

    assert exc_info.value.field == "prompt"
    assert api.requests == []


async def test_blank_prompt_is_rejected():
    api = FakeVideoAPI()
    with pytest.raises(ValidationError):
        await _submitter(api).submit(GenerationRequest(prompt="   \n"), CREDS)
    assert api.requests == []


async def test_missing_api_key_is_rejected():
    api = FakeVideoAPI()
    with pytest.raises(ValidationError) as exc_info:
        await _submitter(api).submit(GenerationRequest(prompt="a cat"), Credentials(api_key=""))
    assert exc_info.value.field == "api_key"
    assert api.requests == []


async def test_size_must_be_allowed_for_model():
    api = FakeVideoAPI()
    request = GenerationRequest(prompt="a cat", model=VideoModel.FAST, size="1792x1024")

    with pytest.raises(ValidationError) as exc_info:
        await _submitter(api).submit(request, CREDS)

    assert exc_info.value.field == "size"
    assert api.requests == []


async def test_pro_model_accepts_large_sizes():
    api = FakeVideoAPI()
    request = GenerationRequest(prompt="a cat", model=VideoModel.PRO, size="1792x1024")

    handle = await _submitter(api).submit(request, CREDS)

    assert handle.id == "vid_123"
    fields = multipart_fields(api.requests[0])
    assert fields["model"] == b"sora-2-pro"
    assert fields["size"] == b"1792x1024"


async def test_duration_must_be_allowed():
    api = FakeVideoAPI()
    with pytest.raises(ValidationError) as exc_info:
        await _submitter(api).submit(GenerationRequest(prompt="a cat", seconds=5), CREDS)
    assert exc_info.value.field == "seconds"
    assert api.requests == []


async def test_multipart_payload_and_authorization():
    api = FakeVideoAPI()
    reference = ReferenceImage(data=b"\xff\xd8jpeg-bytes", mime_type="image/jpeg", filename="ref.jpg")
    request = GenerationRequest(
        prompt="a cat", model=VideoModel.FAST, size="1280x720", seconds=4,
        reference_image=reference,
    )

    handle = await _submitter(api).submit(request, CREDS)

    assert handle.id == "vid_123"
    assert len(api.requests) == 1
    sent = api.requests[0]
    assert sent.url == f"{BASE_URL}/videos"
    assert sent.headers["authorization"] == "Bearer sk-test-key"
    assert sent.headers["content-type"].startswith("multipart/form-data")

    fields = multipart_fields(sent)
    assert fields["prompt"] == b"a cat"
    assert fields["model"] == b"sora-2"
    assert fields["size"] == b"1280x720"
    assert fields["seconds"] == b"4"
    assert fields["input_reference"] == b"\xff\xd8jpeg-bytes"


async def test_unset_size_and_seconds_are_not_sent():
    api = FakeVideoAPI()

    await _submitter(api).submit(GenerationRequest(prompt="a cat"), CREDS)

    fields = multipart_fields(api.requests[0])
    assert set(fields) == {"prompt", "model"}


async def test_error_envelope_message_is_surfaced():
    api = FakeVideoAPI(create_response=httpx.Response(
        400, json={"error": {"type": "invalid_request_error", "message": "Invalid size"}},
    ))

    with pytest.raises(RemoteError) as exc_info:
        await _submitter(api).submit(GenerationRequest(prompt="a cat"), CREDS)

    assert exc_info.value.status == 400
    assert exc_info.value.message == "Invalid size"


async def test_unparseable_error_body_gets_generic_message():
    api = FakeVideoAPI(create_response=httpx.Response(502, text="<html>Bad Gateway</html>"))

    with pytest.raises(RemoteError) as exc_info:
        await _submitter(api).submit(GenerationRequest(prompt="a cat"), CREDS)

    assert exc_info.value.status == 502
    assert "could not parse" in exc_info.value.message


async def test_success_without_id_is_malformed():
    api = FakeVideoAPI(create_response=httpx.Response(200, json={"status": "queued"}))

    with pytest.raises(RemoteError, match="no video id"):
        await _submitter(api).submit(GenerationRequest(prompt="a cat"), CREDS)


async def test_connection_failure_is_a_transport_error_without_retry():
    api = FakeVideoAPI(create_response=httpx.ConnectError("connection refused"))

    with pytest.raises(TransportError):
        await _submitter(api).submit(GenerationRequest(prompt="a cat"), CREDS)

    assert api.count("POST") == 1
