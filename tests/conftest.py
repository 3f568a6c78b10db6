"""
Shared pytest fixtures for the parcel feedback test suite.
"""

import json
from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest

STRUCTURED_RESPONSE = {
    "summary": "Residents want a park with trees and better lighting at night.",
    "recommendations": [
        "Plant street trees along the frontage.",
        "Add pedestrian-scale lighting.",
        "Hold a design workshop with neighbors.",
    ],
    "themes": [{"theme": "park", "count": 3}, {"theme": "lighting", "count": 2}],
    "representativeComments": ["We need a park here."],
}


@pytest.fixture(autouse=True)
def isolate_tests(tmp_path, monkeypatch):
    """Isolate tests from production config files and the tiktoken download."""
    # Empty config.json in a scratch working directory so no production config is loaded
    config_file = tmp_path / "config.json"
    with open(config_file, "w") as f:
        json.dump({}, f)
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("DATABASE_URL", raising=False)

    import tiktoken

    def offline_encoding(model_name):
        raise KeyError(f"No offline encoding for {model_name}")

    monkeypatch.setattr(tiktoken, "encoding_for_model", offline_encoding)


@pytest.fixture
def tmp_cache_dir(tmp_path):
    """Temporary cache directory for testing."""
    cache_dir = tmp_path / "cache" / "summaries"
    cache_dir.mkdir(parents=True)
    return cache_dir


@pytest.fixture
def database_url(tmp_path):
    # File-backed so worker threads share the same database
    return f"sqlite:///{tmp_path / 'parcels.db'}"


@pytest.fixture
def store(database_url):
    """Empty ParcelStore on a temporary SQLite database."""
    from storage.database import create_db_engine, create_session_factory, init_db
    from storage.parcel_store import ParcelStore

    engine = create_db_engine(database_url)
    init_db(engine)
    yield ParcelStore(session_factory=create_session_factory(engine))
    engine.dispose()


@pytest.fixture
def sample_parcels():
    """Four parcels around Philadelphia, one without coordinates."""
    from storage.schemas import ParcelRecord

    return [
        ParcelRecord(id=1, latitude=39.9500, longitude=-75.1600, address="100 MARKET ST"),
        ParcelRecord(id=2, latitude=39.9600, longitude=-75.1700, address="200 VINE ST"),
        ParcelRecord(id=3, latitude=39.9510, longitude=-75.1610, address="110 MARKET ST"),
        ParcelRecord(id=4, address="NO GEOMETRY"),
    ]


@pytest.fixture
def populated_store(store, sample_parcels):
    """Store holding the sample parcels."""
    store.add_parcels(sample_parcels)
    return store


@pytest.fixture
def comment_factory():
    """Build plain comment objects for ranking and summary tests."""
    base_time = datetime(2024, 5, 1, 12, 0, 0)

    def _make(content, upvotes=0, downvotes=0, minutes=0, parcel_id=1, comment_id=1):
        from storage.schemas import CommentRecord

        return CommentRecord(
            id=comment_id,
            parcel_id=parcel_id,
            author_id=1,
            content=content,
            upvotes=upvotes,
            downvotes=downvotes,
            created_at=base_time + timedelta(minutes=minutes),
        )

    return _make


@pytest.fixture
def park_comments():
    """Comment texts that mention parks, trees and lighting."""
    return [
        "We need a park here. Trees would help a lot!",
        "A park with benches would be lovely.",
        "Better lighting please, the corner feels unsafe at night.",
        "Park space for kids and trees along the street.",
    ]


@pytest.fixture
def structured_response_text():
    """Model output wrapping a valid structured summary in prose."""
    return "Here is the summary:\n" + json.dumps(STRUCTURED_RESPONSE) + "\nThanks!"


@pytest.fixture
def make_openai_client():
    """Factory for a mock OpenAI client that answers with the given content."""

    def _make(content):
        mock_client = MagicMock()
        mock_response = MagicMock()
        mock_response.choices = [MagicMock()]
        mock_response.choices[0].message.content = content
        mock_client.chat.completions.create.return_value = mock_response
        return mock_client

    return _make


@pytest.fixture
def mock_openai_client(make_openai_client, structured_response_text):
    """Mock OpenAI client returning a valid structured summary."""
    return make_openai_client(structured_response_text)
