"""Unit tests for the transcription client and backends."""

import asyncio
import random
from unittest.mock import AsyncMock, MagicMock, Mock, patch

import aiohttp
import pytest

from speak2spend.transcription import (
    DeepgramBackend,
    FallbackTranscriptGenerator,
    GoogleSpeechBackend,
    TranscriptionBackendError,
    TranscriptionClient,
)
from speak2spend.transcription.fallback import BACKEND_FAILURE_TRANSCRIPT, EXAMPLE_TRANSCRIPTS


def make_session(status=200, json_payload=None, text="", error=None):
    """aiohttp.ClientSession stand-in whose post() yields one canned response."""
    response = MagicMock()
    response.status = status
    response.json = AsyncMock(return_value=json_payload)
    response.text = AsyncMock(return_value=text)

    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=response)
    context.__aexit__ = AsyncMock(return_value=False)

    session = MagicMock()
    if error is not None:
        session.post.side_effect = error
    else:
        session.post.return_value = context
    return session


def deepgram_result(transcript, confidence):
    return {"results": {"channels": [{"alternatives": [{"transcript": transcript, "confidence": confidence}]}]}}


@pytest.mark.unit
class TestFallbackTranscriptGenerator:
    """Local example transcripts."""

    def test_samples_from_examples(self):
        generator = FallbackTranscriptGenerator(rng=random.Random(3))
        assert all(generator.sample() in EXAMPLE_TRANSCRIPTS for _ in range(20))

    def test_seeded_generators_agree(self):
        first = FallbackTranscriptGenerator(rng=random.Random(42))
        second = FallbackTranscriptGenerator(rng=random.Random(42))
        assert [first.sample() for _ in range(5)] == [second.sample() for _ in range(5)]

    def test_requires_examples(self):
        with pytest.raises(ValueError):
            FallbackTranscriptGenerator(examples=[])


@pytest.mark.unit
class TestTranscriptionClient:
    """Backend selection and graceful degradation."""

    def test_no_backend_uses_demo_transcript(self, sample_clip):
        client = TranscriptionClient(fallback=FallbackTranscriptGenerator(examples=["Taxi home twenty dollars"]))

        transcript = asyncio.run(client.transcribe(sample_clip))

        assert client.demo_mode
        assert transcript.text == "Taxi home twenty dollars"
        assert transcript.confidence == 0.85
        assert transcript.demo_mode is True

    def test_backend_transcript_returned(self, sample_clip, make_backend):
        backend = make_backend({"transcript": "Lunch at Toast Box eight dollars", "confidence": 0.97})
        client = TranscriptionClient(backend)

        transcript = asyncio.run(client.transcribe(sample_clip))

        assert not client.demo_mode
        assert client.service_name == "Fake STT"
        assert transcript.text == "Lunch at Toast Box eight dollars"
        assert transcript.confidence == 0.97
        assert transcript.service == "Fake STT"
        assert transcript.demo_mode is False
        assert backend.clips == [sample_clip]

    def test_backend_error_falls_back(self, sample_clip, make_backend):
        client = TranscriptionClient(make_backend(error=TranscriptionBackendError("401 Unauthorized")))

        transcript = asyncio.run(client.transcribe(sample_clip))

        assert transcript.text == BACKEND_FAILURE_TRANSCRIPT
        assert transcript.confidence == 0.5
        assert transcript.demo_mode is True

    def test_empty_backend_transcript_falls_back(self, sample_clip, make_backend):
        client = TranscriptionClient(make_backend({"transcript": "   ", "confidence": 0.0}))

        transcript = asyncio.run(client.transcribe(sample_clip))

        assert transcript.text == BACKEND_FAILURE_TRANSCRIPT
        assert transcript.demo_mode is True

    def test_malformed_confidence_is_dropped(self, sample_clip, make_backend):
        client = TranscriptionClient(make_backend({"transcript": "five dollars", "confidence": "high"}))

        transcript = asyncio.run(client.transcribe(sample_clip))

        assert transcript.text == "five dollars"
        assert transcript.confidence is None

    def test_close_cleans_up_backend(self, make_backend):
        backend = make_backend()
        asyncio.run(TranscriptionClient(backend).close())
        assert backend.cleaned_up


@pytest.mark.unit
class TestDeepgramBackend:
    """Deepgram REST backend with a mocked aiohttp session."""

    def test_requires_api_key(self):
        with pytest.raises(ValueError):
            DeepgramBackend(api_key="")

    def test_successful_request(self, sample_clip):
        session = make_session(json_payload=deepgram_result("Coffee at Starbucks five dollars", 0.95))
        backend = DeepgramBackend(api_key="dg_test_key_123456", session=session)

        payload = asyncio.run(backend.transcribe(sample_clip))

        assert payload == {"transcript": "Coffee at Starbucks five dollars", "confidence": 0.95}
        kwargs = session.post.call_args.kwargs
        assert session.post.call_args.args[0] == "https://api.deepgram.com/v1/listen"
        assert kwargs["headers"]["Authorization"] == "Token dg_test_key_123456"
        assert kwargs["headers"]["Content-Type"] == "audio/wav"
        assert kwargs["params"]["model"] == "nova-2"
        assert kwargs["params"]["language"] == "en-US"
        assert kwargs["params"]["smart_format"] == "true"
        assert kwargs["data"] == sample_clip.data

    def test_http_error_status(self, sample_clip):
        session = make_session(status=401, text="Invalid credentials")
        backend = DeepgramBackend(api_key="dg_test_key_123456", session=session)

        with pytest.raises(TranscriptionBackendError, match="401"):
            asyncio.run(backend.transcribe(sample_clip))

    @pytest.mark.parametrize("error", [aiohttp.ClientConnectionError("refused"), asyncio.TimeoutError()])
    def test_network_errors_wrapped(self, sample_clip, error):
        backend = DeepgramBackend(api_key="dg_test_key_123456", session=make_session(error=error))

        with pytest.raises(TranscriptionBackendError):
            asyncio.run(backend.transcribe(sample_clip))

    @pytest.mark.parametrize("result", [{}, {"results": {"channels": []}}, None])
    def test_unexpected_response_shape(self, sample_clip, result):
        backend = DeepgramBackend(api_key="dg_test_key_123456", session=make_session(json_payload=result))

        with pytest.raises(TranscriptionBackendError):
            asyncio.run(backend.transcribe(sample_clip))


@pytest.mark.unit
class TestGoogleSpeechBackend:
    """Google backend with a mocked SpeechClient."""

    def test_requires_credentials_path(self):
        with pytest.raises(ValueError):
            GoogleSpeechBackend(credentials_path=None)

    def test_initialize_loads_credentials(self):
        with patch('speak2spend.transcription.google_backend.service_account.Credentials') as creds, \
                patch('speak2spend.transcription.google_backend.speech.SpeechClient') as client_class:
            creds.from_service_account_file.return_value = Mock(project_id="demo-project")
            backend = GoogleSpeechBackend(credentials_path="/tmp/creds.json")

            assert backend.initialize() is True
            assert backend.project_id == "demo-project"
            client_class.assert_called_once()

    def test_transcribe_returns_first_alternative(self, sample_clip):
        backend = GoogleSpeechBackend(credentials_path="/tmp/creds.json")
        alternative = Mock(transcript="Grab ride twelve dollars", confidence=0.88)
        backend.client = Mock()
        backend.client.recognize.return_value = Mock(results=[Mock(alternatives=[alternative])])

        payload = asyncio.run(backend.transcribe(sample_clip))

        assert payload == {"transcript": "Grab ride twelve dollars", "confidence": 0.88}

    def test_no_speech_returns_empty(self, sample_clip):
        backend = GoogleSpeechBackend(credentials_path="/tmp/creds.json")
        backend.client = Mock()
        backend.client.recognize.return_value = Mock(results=[])

        payload = asyncio.run(backend.transcribe(sample_clip))

        assert payload["transcript"] == ""

    def test_api_errors_wrapped(self, sample_clip):
        from google.api_core import exceptions as gax_exceptions

        backend = GoogleSpeechBackend(credentials_path="/tmp/creds.json")
        backend.client = Mock()
        backend.client.recognize.side_effect = gax_exceptions.DeadlineExceeded("too slow")

        with pytest.raises(TranscriptionBackendError):
            asyncio.run(backend.transcribe(sample_clip))

    def test_transcribe_before_initialize(self, sample_clip):
        backend = GoogleSpeechBackend(credentials_path="/tmp/creds.json")

        with pytest.raises(TranscriptionBackendError):
            asyncio.run(backend.transcribe(sample_clip))
