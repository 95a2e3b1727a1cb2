"""Pytest configuration and shared fixtures for card tracker tests."""

import pytest
import tempfile
import shutil
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, Mock, patch

from card_tracker.core.types import CardRecord
from card_tracker.resolve.poketcg import PokemonTCGClient
from card_tracker.resolve.response_cache import ResponseCache
from card_tracker.store.backend import MemoryStorage
from card_tracker.store.collection_store import CollectionStore
from card_tracker.ui.manager import CollectionManager
from card_tracker.ui.notifier import Notifier


class FakeClock:
    """Manually advanced clock for cache expiry tests."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(scope="session")
def test_environment():
    """Set up test environment for the entire test session."""
    with patch.dict('os.environ', {
        'LOG_LEVEL': 'DEBUG',
        'STORAGE_PATH': '/tmp/test_tracker/tracker.db',
        'EXPORT_DIR': '/tmp/test_tracker/output'
    }):
        yield


@pytest.fixture(scope="function")
def temp_dirs():
    """Create temporary directories for each test function."""
    temp_dir = Path(tempfile.mkdtemp())
    output_dir = temp_dir / "output"
    data_dir = temp_dir / "data"
    output_dir.mkdir()
    data_dir.mkdir()

    yield {
        'temp_dir': temp_dir,
        'output_dir': output_dir,
        'data_dir': data_dir
    }

    # Cleanup
    shutil.rmtree(temp_dir)


@pytest.fixture
def fixed_clock():
    """ISO clock that always returns the same instant."""
    return lambda: "2024-01-15T12:00:00+00:00"


@pytest.fixture
def store(fixed_clock):
    """Initialized store over in-memory storage."""
    collection_store = CollectionStore(MemoryStorage(), clock=fixed_clock)
    collection_store.initialize()
    return collection_store


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def response_cache(fake_clock):
    return ResponseCache(duration_seconds=3600, clock=fake_clock)


@pytest.fixture
def mock_session():
    """aiohttp session double; set ``get.return_value`` or ``get.side_effect``."""
    session = Mock()
    session.closed = False
    session.close = AsyncMock()
    return session


def make_response_context(status: int = 200, payload=None):
    """Async context manager wrapping a fake aiohttp response."""
    mock_response = Mock()
    mock_response.status = status
    mock_response.json = AsyncMock(return_value=payload if payload is not None else {"data": []})

    mock_context = MagicMock()
    mock_context.__aenter__ = AsyncMock(return_value=mock_response)
    mock_context.__aexit__ = AsyncMock(return_value=None)
    return mock_context


@pytest.fixture
def client(response_cache, mock_session):
    return PokemonTCGClient(
        cache=response_cache,
        api_key=None,
        base_url="https://api.pokemontcg.io/v2",
        session=mock_session,
    )


@pytest.fixture
def notifier():
    return Notifier()


@pytest.fixture
def manager(store, client, notifier):
    collection_manager = CollectionManager(
        store, client, notifier=notifier, page_size=20, debounce_ms=10, min_query_length=2
    )
    collection_manager.load()
    return collection_manager


@pytest.fixture(scope="function")
def sample_card_data():
    """Raw API card with TCGplayer prices."""
    return {
        'id': 'base1-4',
        'name': 'Charizard',
        'number': '4',
        'rarity': 'Rare Holo',
        'types': ['Fire'],
        'supertype': 'Pokémon',
        'images': {'small': 'https://images.pokemontcg.io/base1/4.png'},
        'set': {
            'id': 'base1',
            'name': 'Base',
            'series': 'Base',
            'releaseDate': '1999/01/09',
            'images': {'symbol': 'https://images.pokemontcg.io/base1/symbol.png'}
        },
        'tcgplayer': {
            'updatedAt': '2024/01/10',
            'prices': {
                'holofoil': {'market': 350.0, 'low': 300.0, 'high': 500.0}
            }
        },
        'cardmarket': {
            'updatedAt': '2024/01/10',
            'prices': {'trendPrice': 310.0, 'avg30': 305.0}
        }
    }


@pytest.fixture
def pikachu():
    return CardRecord(
        id="base1-58", name="Pikachu", number="58", set_name="Base", set_code="base1",
        rarity="Common", types=["Lightning"], market_value=2.0, quantity=3,
        added_date="2024-01-10T00:00:00+00:00",
    )


@pytest.fixture
def charizard():
    return CardRecord(
        id="base1-4", name="Charizard", number="4", set_name="Base", set_code="base1",
        rarity="Rare Holo", types=["Fire"], market_value=50.0, quantity=1,
        added_date="2023-06-01T00:00:00+00:00",
    )


# Configure pytest options
def pytest_configure(config):
    """Configure pytest with custom options."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "slow: marks tests as slow running"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers automatically."""
    for item in items:
        # Mark integration tests
        if "integration" in item.name.lower() or "TestEndToEnd" in str(item.cls):
            item.add_marker(pytest.mark.integration)

        # Mark slow tests
        if any(slow_indicator in item.name.lower() for slow_indicator in ['debounce', 'batch_delay', 'sqlite']):
            item.add_marker(pytest.mark.slow)

        # Mark unit tests (default)
        if not item.get_closest_marker('integration') and not item.get_closest_marker('slow'):
            item.add_marker(pytest.mark.unit)


@pytest.fixture
def make_response():
    """Factory for fake ``session.get(...)`` context managers."""
    return make_response_context
