"""Unit tests for data models."""

from datetime import datetime, timezone
from decimal import Decimal
import wave
import io

import pytest

from speak2spend.models import (
    AudioClip,
    Category,
    ExtractedTransaction,
    FailureReason,
    RecordingSession,
    RecordingState,
    StoredTransaction,
    Transcript,
    failure_message,
)
from speak2spend.models.transaction import quantize_amount, truncate_vendor


@pytest.mark.unit
class TestAudioClip:
    """Test cases for AudioClip."""

    def test_from_pcm_wraps_wav(self, sample_audio_chunk):
        clip = AudioClip.from_pcm(sample_audio_chunk * 16, sample_rate=16000, channels=1)

        assert clip.mime_type == "audio/wav"
        assert clip.duration_seconds == pytest.approx(16 * 1024 / 16000)
        with wave.open(io.BytesIO(clip.data), 'rb') as wf:
            assert wf.getnchannels() == 1
            assert wf.getsampwidth() == 2
            assert wf.getframerate() == 16000
            assert wf.getnframes() == 16 * 1024

    def test_empty_clip(self):
        clip = AudioClip.from_pcm(b"")

        assert clip.duration_seconds == 0.0
        assert clip.size_bytes > 0  # header only

    def test_write_temp_file(self, sample_clip, temp_data_dir):
        path = sample_clip.write_temp_file(temp_data_dir)

        assert path.exists()
        assert path.suffix == ".wav"
        assert path.read_bytes() == sample_clip.data


@pytest.mark.unit
class TestTranscript:
    """Boundary normalization of backend payloads."""

    def test_well_formed_payload(self):
        transcript = Transcript.from_payload({"transcript": "  five   dollars ", "confidence": 0.9}, "Deepgram")

        assert transcript.text == "five dollars"
        assert transcript.confidence == 0.9
        assert transcript.service == "Deepgram"
        assert not transcript.demo_mode

    @pytest.mark.parametrize("payload", [
        None,
        "five dollars",
        [],
        {},
        {"transcript": None},
        {"transcript": 42},
    ])
    def test_malformed_payload_defaults_to_empty(self, payload):
        transcript = Transcript.from_payload(payload, "Deepgram")

        assert transcript.text == ""
        assert transcript.is_empty
        assert transcript.confidence is None

    @pytest.mark.parametrize("confidence", ["0.9", True, -0.1, 1.5, float("nan"), None])
    def test_invalid_confidence_dropped(self, confidence):
        transcript = Transcript.from_payload({"transcript": "hi", "confidence": confidence}, "x")
        assert transcript.confidence is None

    def test_integer_confidence_accepted(self):
        assert Transcript(text="hi", confidence=1).confidence == 1.0

    def test_transcript_is_immutable(self):
        transcript = Transcript(text="hi")
        with pytest.raises(Exception):
            transcript.text = "changed"


@pytest.mark.unit
class TestTransactions:
    """Test cases for transaction models."""

    def test_extracted_defaults(self):
        transaction = ExtractedTransaction()

        assert transaction.amount == Decimal("0.00")
        assert transaction.vendor == "Unknown"
        assert transaction.category is Category.OTHER
        assert transaction.confidence == 0.5

    def test_quantize_rounds_half_up(self):
        assert quantize_amount("2.345") == Decimal("2.35")
        assert quantize_amount(3) == Decimal("3.00")

    def test_truncate_vendor(self):
        assert truncate_vendor("x" * 30) == "x" * 30
        assert truncate_vendor("x" * 31) == "x" * 30 + "..."

    def test_category_parse(self):
        assert Category.parse("groceries") is Category.GROCERIES
        assert Category.parse(" Food ") is Category.FOOD
        with pytest.raises(ValueError):
            Category.parse("Travel")

    def test_stored_transaction_dict_round_trip(self):
        stored = StoredTransaction(
            transaction_id="abc123",
            amount=Decimal("12.50"),
            vendor="Starbucks",
            category=Category.FOOD,
            raw_text="coffee",
            timestamp=datetime(2024, 3, 1, 8, 30, tzinfo=timezone.utc),
            confidence=0.9,
        )
        data = stored.to_dict()

        assert data["id"] == "abc123"
        assert data["amount"] == "12.50"
        assert data["category"] == "Food"
        assert StoredTransaction.from_dict(data) == stored

    def test_naive_timestamps_read_as_utc(self):
        stored = StoredTransaction.from_dict({
            "id": "x", "amount": "1", "vendor": "v", "category": "Other",
            "timestamp": "2024-03-01T08:30:00",
        })
        assert stored.timestamp.tzinfo is not None


@pytest.mark.unit
class TestSession:
    """Test cases for session models."""

    def test_new_session_is_idle(self):
        session = RecordingSession()

        assert session.state is RecordingState.IDLE
        assert session.elapsed_seconds == 0
        assert session.failure_text is None

    def test_terminal_states(self):
        assert RecordingState.COMPLETED.is_terminal
        assert RecordingState.FAILED.is_terminal
        assert not RecordingState.PROCESSING.is_terminal

    @pytest.mark.parametrize("reason", list(FailureReason))
    def test_every_failure_has_guidance(self, reason):
        message = failure_message(reason)
        assert message
        assert "try again" in message.lower()

    def test_failure_messages_are_distinct(self):
        messages = {failure_message(reason) for reason in FailureReason}
        assert len(messages) == len(FailureReason)
