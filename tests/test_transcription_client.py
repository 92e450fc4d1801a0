import httpx
import pytest

from backend.services.audio_batcher import AudioBatcher
from backend.services.transcription_client import ElevenLabsTranscriber, segment_from_response


def _batch(track="inbound"):
    batcher = AudioBatcher(batch_size=10)
    batcher.ingest(b"\x7f" * 320, track)
    return batcher.flush()


def _transcriber(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ElevenLabsTranscriber(client=client)


@pytest.mark.asyncio
async def test_transcribe_posts_batch_and_normalizes_response():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(
            200,
            json={
                "text": "  hello there  ",
                "words": [
                    {"text": "hello", "start": 0.1, "end": 0.4, "speaker_id": "speaker_1", "confidence": 0.8},
                    {"text": "there", "start": 0.5, "end": 0.9, "speaker_id": "speaker_1", "confidence": 0.6},
                ],
            },
        )

    segment = await _transcriber(handler).transcribe(_batch())

    assert segment.content == "hello there"
    assert segment.speaker == "speaker_1"
    assert segment.start_time == 0.1
    assert segment.end_time == 0.9
    assert segment.confidence == pytest.approx(0.7)

    request = requests[0]
    assert request.headers["xi-api-key"] == "test-key"
    body = request.read()
    assert b'name="model_id"' in body and b"scribe_v1" in body
    assert b'name="num_speakers"' in body
    assert b"RIFF" in body


@pytest.mark.asyncio
async def test_transcribe_returns_none_on_error_status():
    def handler(request):
        return httpx.Response(500, text="boom")

    assert await _transcriber(handler).transcribe(_batch()) is None


@pytest.mark.asyncio
async def test_transcribe_returns_none_on_transport_error():
    def handler(request):
        raise httpx.ConnectError("unreachable", request=request)

    assert await _transcriber(handler).transcribe(_batch()) is None


@pytest.mark.asyncio
async def test_transcribe_returns_none_for_silence():
    def handler(request):
        return httpx.Response(200, json={"text": "   ", "words": []})

    assert await _transcriber(handler).transcribe(_batch()) is None


def test_speaker_falls_back_to_track_label():
    caller = segment_from_response({"text": "hi", "words": [{"text": "hi", "start": 0, "end": 1}]}, "inbound")
    agent = segment_from_response({"text": "hi"}, "outbound")

    assert caller.speaker == "Caller"
    assert caller.confidence is None
    assert agent.speaker == "Agent"
    assert agent.start_time is None and agent.end_time is None


def test_confidence_averages_only_scored_words():
    segment = segment_from_response(
        {"text": "a b", "words": [{"text": "a", "confidence": 0.5}, {"text": "b"}, {"text": "c", "confidence": 1.0}]},
        None,
    )
    assert segment.confidence == pytest.approx(0.75)
