"""Unit tests for backend selection and the ExpenseService facade."""

import asyncio
import uuid
from decimal import Decimal
from unittest.mock import patch

import pytest

from speak2spend.config import Speak2SpendConfig
from speak2spend.models.transaction import Category
from speak2spend.services import (
    ExpenseService,
    create_transcription_backend,
    describe_environment,
)
from speak2spend.transcription import DeepgramBackend, GoogleSpeechBackend, TranscriptionClient

DEEPGRAM_KEY = "dg_0123456789abcdef"


@pytest.fixture
def make_config(tmp_path):
    """Config rooted in a temp dir; ``google_creds=True`` creates a credentials file."""
    def make(backend="auto", deepgram_key=None, google_creds=False):
        environ = {}
        if deepgram_key:
            environ["DEEPGRAM_API_KEY"] = deepgram_key
        if google_creds:
            creds = tmp_path / "google.json"
            creds.write_text("{}")
            environ["GOOGLE_APPLICATION_CREDENTIALS"] = str(creds)
        path = tmp_path / "speak2spend.yaml"
        path.write_text(f"transcription:\n  backend: {backend}\nstorage:\n  data_directory: data\n")
        return Speak2SpendConfig(str(path), environ=environ)
    return make


@pytest.fixture
def google_initialize():
    with patch.object(GoogleSpeechBackend, "initialize", return_value=True) as initialize:
        yield initialize


@pytest.mark.unit
class TestBackendSelection:
    """Which backend a configuration produces."""

    def test_no_credentials_is_demo(self, make_config):
        assert create_transcription_backend(make_config()) is None

    def test_auto_prefers_deepgram(self, make_config, google_initialize):
        backend = create_transcription_backend(make_config(deepgram_key=DEEPGRAM_KEY, google_creds=True))

        assert isinstance(backend, DeepgramBackend)
        assert backend.api_key == DEEPGRAM_KEY
        google_initialize.assert_not_called()

    def test_auto_falls_back_to_google(self, make_config, google_initialize):
        backend = create_transcription_backend(make_config(google_creds=True))

        assert isinstance(backend, GoogleSpeechBackend)
        google_initialize.assert_called_once()

    def test_placeholder_key_ignored(self, make_config):
        assert create_transcription_backend(make_config(deepgram_key="your_deepgram_api_key")) is None

    def test_explicit_google_without_credentials(self, make_config):
        assert create_transcription_backend(make_config(backend="google", deepgram_key=DEEPGRAM_KEY)) is None

    def test_explicit_deepgram_ignores_google(self, make_config, google_initialize):
        assert create_transcription_backend(make_config(backend="deepgram", google_creds=True)) is None
        google_initialize.assert_not_called()

    def test_none_disables_backends(self, make_config):
        assert create_transcription_backend(make_config(backend="none", deepgram_key=DEEPGRAM_KEY)) is None

    def test_google_initialize_failure_is_demo(self, make_config):
        with patch.object(GoogleSpeechBackend, "initialize", side_effect=ValueError("bad key file")):
            assert create_transcription_backend(make_config(google_creds=True)) is None


@pytest.mark.unit
class TestDescribeEnvironment:
    """Status report for check-env."""

    def test_demo_mode(self, make_config, tmp_path):
        status = describe_environment(make_config())

        assert status["demo_mode"] is True
        assert status["active_service"] is None
        assert status["deepgram_configured"] is False
        assert status["data_directory"] == str((tmp_path / "data").absolute())

    def test_deepgram_active(self, make_config):
        status = describe_environment(make_config(deepgram_key=DEEPGRAM_KEY, google_creds=True))

        assert status["active_service"] == "Deepgram"
        assert status["google_configured"] is True
        assert status["demo_mode"] is False

    def test_google_requested(self, make_config):
        status = describe_environment(make_config(backend="google", deepgram_key=DEEPGRAM_KEY, google_creds=True))
        assert status["active_service"] == "Google Speech-to-Text"


@pytest.mark.unit
class TestExpenseService:
    """Facade behaviour that needs no audio hardware."""

    def test_parse_uses_extractor(self, make_config):
        service = ExpenseService(make_config(), device_factory=lambda: None,
                                 topic=f"session_events_{uuid.uuid4().hex}")
        try:
            result = service.parse("MRT fare $2.50 to Orchard Road")
        finally:
            asyncio.run(service.shutdown())

        assert result.amount == Decimal("2.50")
        assert result.category is Category.TRANSPORT

    def test_uses_demo_client_without_credentials(self, make_config):
        service = ExpenseService(make_config(), device_factory=lambda: None,
                                 topic=f"session_events_{uuid.uuid4().hex}")
        try:
            assert isinstance(service.transcription_client, TranscriptionClient)
            assert service.transcription_client.demo_mode
        finally:
            asyncio.run(service.shutdown())

    def test_permission_failure_is_returned(self, make_config, make_device_factory):
        from speak2spend.audio.device import MicrophonePermissionError
        from speak2spend.models.session import FailureReason, RecordingState

        factory = make_device_factory(acquire_error=MicrophonePermissionError("denied"))
        service = ExpenseService(make_config(), device_factory=factory,
                                 topic=f"session_events_{uuid.uuid4().hex}")
        try:
            session = asyncio.run(service.record(0.01))
        finally:
            asyncio.run(service.shutdown())

        assert session.state is RecordingState.FAILED
        assert session.failure_reason is FailureReason.PERMISSION
        assert len(service.store) == 0

    def test_unsettled_recording_raises_timeout(self, make_config, make_device_factory, make_backend,
                                                monkeypatch):
        from speak2spend.services import RecordingTimeoutError
        from speak2spend.services import expense_service

        async def never_returns(clip):
            await asyncio.Event().wait()

        backend = make_backend()
        backend.transcribe = never_returns
        config = make_config()
        config.set('recording.failsafe_seconds', 0.05)
        config.set('transcription.timeout_seconds', 0.05)
        monkeypatch.setattr(expense_service, "SETTLE_MARGIN_SECONDS", 0.05)
        factory = make_device_factory(auto_finalize=True)
        service = ExpenseService(config, device_factory=factory,
                                 transcription_client=TranscriptionClient(backend),
                                 topic=f"session_events_{uuid.uuid4().hex}")
        try:
            with pytest.raises(RecordingTimeoutError, match="did not finish"):
                asyncio.run(service.record(0.01))
        finally:
            asyncio.run(service.shutdown())

        assert service.controller is None
        assert factory.last.released
        assert len(service.store) == 0

    def test_controller_events_reach_topic_and_caller(self, make_config):
        from pubsub import pub
        from speak2spend.models.events import STATE_EVENT, SessionEvent
        from speak2spend.models.session import RecordingState

        topic = f"session_events_{uuid.uuid4().hex}"
        published, seen = [], []

        def listener(event):
            published.append(event)

        pub.subscribe(listener, topic)
        service = ExpenseService(make_config(), device_factory=lambda: None, topic=topic)
        try:
            controller = service.create_controller(on_event=seen.append)
            event = SessionEvent(event_type=STATE_EVENT, session_id="s1", state=RecordingState.IDLE)
            controller.callback(event)
        finally:
            pub.unsubscribe(listener, topic)
            asyncio.run(service.shutdown())

        assert published == [event]
        assert seen == [event]
