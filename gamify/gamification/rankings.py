"""
User leaderboards

Snapshots of per-user point totals over a period, recomputable at any time
from the points ledger. Users with equal points share a position
(1, 2, 2, 4).
"""

from typing import Dict, List, Optional, Tuple
from datetime import datetime, timedelta
import logging

from gamify.db.store import GamificationStore
from gamify.models import Ranking, RankingType
from gamify.utils.datetime_helpers import UTC, now_utc, start_of_month

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def period_bounds(ranking_type: RankingType, now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """(start, end) of the ranking period ending at now"""
    now = now or now_utc()
    ranking_type = RankingType(ranking_type)

    if ranking_type == RankingType.WEEKLY:
        return now - timedelta(days=7), now
    if ranking_type == RankingType.MONTHLY:
        return start_of_month(now), now
    return EPOCH, now


def assign_positions(totals: Dict[str, int]) -> List[Tuple[str, int, int]]:
    """[(user_id, points, position)] by points desc with competition ranking"""
    ordered = sorted(totals.items(), key=lambda item: (-item[1], item[0]))
    positions = []
    previous_points = None
    position = 0
    for index, (user_id, points) in enumerate(ordered, start=1):
        if points != previous_points:
            position = index
            previous_points = points
        positions.append((user_id, points, position))
    return positions


class RankingEngine:
    def __init__(self, store: GamificationStore):
        self.store = store

    async def compute_rankings(
        self,
        ranking_type: RankingType,
        now: Optional[datetime] = None
    ) -> List[Ranking]:
        """Aggregate the ledger over the period and replace the stored snapshot"""
        ranking_type = RankingType(ranking_type)
        start, end = period_bounds(ranking_type, now)
        totals = await self.store.sum_points_by_user(start, end)

        computed_at = now_utc()
        rankings = [
            Ranking(
                type=ranking_type,
                user_id=user_id,
                period_start=start,
                period_end=end,
                points=points,
                position=position,
                computed_at=computed_at,
            )
            for user_id, points, position in assign_positions(totals)
        ]

        await self.store.replace_rankings(ranking_type, rankings)
        logger.info(f"Computed {ranking_type.value} rankings for {len(rankings)} users")
        return rankings

    async def get_top_rankings(self, ranking_type: RankingType, limit: int = 10) -> List[Ranking]:
        return await self.store.get_rankings(RankingType(ranking_type), limit=limit)

    async def get_user_ranking(
        self,
        user_id: str,
        ranking_type: RankingType,
        now: Optional[datetime] = None
    ) -> Ranking:
        """
        The user's snapshot row, or a position computed on the fly

        The on-the-fly position is the number of users with more points in
        the period plus one.
        """
        ranking_type = RankingType(ranking_type)
        snapshot = await self.store.get_user_ranking(ranking_type, user_id)
        if snapshot is not None:
            return snapshot

        start, end = period_bounds(ranking_type, now)
        totals = await self.store.sum_points_by_user(start, end)
        points = totals.get(user_id, 0)
        position = sum(1 for other in totals.values() if other > points) + 1

        return Ranking(
            type=ranking_type,
            user_id=user_id,
            period_start=start,
            period_end=end,
            points=points,
            position=position,
        )
