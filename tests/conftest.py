"""Shared pytest fixtures and configuration."""

import os
import pytest
from unittest.mock import Mock, AsyncMock, MagicMock
from freezegun import freeze_time

# Set test environment variables
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-key")
os.environ.setdefault("LLM_PROVIDER", "openai")
os.environ.setdefault("LLM_MODEL", "gpt-4o-audio-preview")
os.environ.setdefault("OPENAI_API_KEY", "test-openai-key")
os.environ.setdefault("STATUS_RESET_SECONDS", "3")
os.environ.setdefault("LOG_FORMAT", "text")

from voiceboard.models.session import UserSession  # noqa: E402
from voiceboard.services.ai_client import TaskExtractionClient  # noqa: E402
from voiceboard.services.audio import AudioClip  # noqa: E402
from tests.fixtures.ai_responses import create_response_call_sarah  # noqa: E402
from tests.utils.factories import create_ai_data, create_subtasks, create_task  # noqa: E402
from tests.utils.helpers import make_supabase_mock  # noqa: E402


@pytest.fixture
def mock_supabase_client():
    """Mock Supabase client for testing."""
    return make_supabase_mock()


@pytest.fixture
def mock_llm_model():
    """Mock LangChain chat model for testing."""
    model = Mock()
    model.ainvoke = AsyncMock()
    return model


@pytest.fixture
def mock_ai_client():
    """Extraction client with all three operations mocked."""
    client = MagicMock(spec=TaskExtractionClient)
    client.extract_task = AsyncMock()
    client.extract_update = AsyncMock()
    client.generate_subtasks = AsyncMock()
    return client


@pytest.fixture
def user_session():
    """Signed-in user."""
    return UserSession(
        user_id="7f9c2ba4-e88f-41a3-9d1c-3b2f0c1d2e3f",
        email="user@example.com",
        access_token="test-access-token",
    )


@pytest.fixture
def audio_clip():
    """A short finished recording."""
    return AudioClip(data=b"\x1aE\xdf\xa3fake-webm-bytes", mime_type="audio/webm;codecs=opus", duration_seconds=4)


@pytest.fixture
def sample_create_response():
    """AI create response for 'Call Sarah'."""
    return create_response_call_sarah()


@pytest.fixture
def sample_task():
    """Stored task with four subtasks, one completed."""
    return create_task(
        ai_extracted=create_ai_data(
            subtasks=create_subtasks(count=4, completed=1),
            needs_clarification=True,
            clarification_question="Which budget?",
        ),
        progress=25,
    )


@pytest.fixture
def freeze_time_fixture():
    """Fixture for freezing time in tests."""
    with freeze_time("2025-03-10 12:00:00") as frozen_time:
        yield frozen_time

