"""Global test fixtures and utilities for gamify tests"""
import pytest
from unittest.mock import AsyncMock, MagicMock

from gamify import config
from gamify.db.memory_store import InMemoryStore
from gamify.gamification.engine import GamificationEngine
from gamify.models import Badge, BadgeCriteria, BadgeRarity, Challenge, ChallengeObjective, ChallengeRewards, CriteriaType


# ============================================================================
# Environment
# ============================================================================

@pytest.fixture(autouse=True)
def utc_day_boundaries(monkeypatch):
    """Streak days are computed in UTC unless a test says otherwise"""
    monkeypatch.setattr(config, "GAMIFY_TIMEZONE", "UTC")


# ============================================================================
# Store & Engine Fixtures
# ============================================================================

@pytest.fixture
def store():
    """Fresh in-memory store"""
    return InMemoryStore()


@pytest.fixture
def engine(store):
    """Engine over the in-memory store, with the derived total cache disabled"""
    return GamificationEngine(store, total_cache_ttl=0)


@pytest.fixture
def test_user_id():
    """Standard test user ID"""
    return "user-1"


# ============================================================================
# Database Mock Fixtures
# ============================================================================

@pytest.fixture
def mock_cursor():
    """Mock psycopg cursor with empty results"""
    cursor = AsyncMock()
    cursor.fetchone.return_value = None
    cursor.fetchall.return_value = []
    return cursor


@pytest.fixture
def mock_conn(mock_cursor):
    """Mock psycopg connection whose cursor() yields mock_cursor"""
    conn = MagicMock()
    conn.cursor.return_value.__aenter__.return_value = mock_cursor
    conn.commit = AsyncMock()
    return conn


# ============================================================================
# Builders
# ============================================================================

@pytest.fixture
def make_badge(engine):
    """Factory creating an automatic badge together with its criteria"""
    async def _make(
        name: str,
        criteria_type: CriteriaType,
        value: int,
        description: str = "",
        rarity: BadgeRarity = BadgeRarity.COMMON,
        category: str = "general",
    ) -> Badge:
        return await engine.badges.create_badge(
            Badge(name=name, rarity=rarity, category=category),
            BadgeCriteria(type=criteria_type, value=value, description=description),
        )
    return _make


@pytest.fixture
def make_team_challenge(engine):
    """Factory creating a team challenge with one 'task_completed' objective by default"""
    async def _make(points: int = 100, currency: int = 0, objectives=None, badges=None) -> Challenge:
        return await engine.challenges.create_challenge(
            Challenge(
                title="Sprint challenge",
                objectives=objectives or [ChallengeObjective(type="task_completed", target=10)],
                rewards=ChallengeRewards(points=points, currency=currency, badges=badges or []),
                team_based=True,
            )
        )
    return _make
