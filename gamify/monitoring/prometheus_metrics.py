"""Prometheus metrics definitions and helpers"""
import logging

from prometheus_client import Counter

from gamify.config import ENABLE_PROMETHEUS

logger = logging.getLogger(__name__)


class PrometheusMetrics:
    """Container for all gamification metrics"""

    def __init__(self, enabled: bool = ENABLE_PROMETHEUS):
        if not enabled:
            logger.info("Prometheus metrics disabled")
            self._enabled = False
            return

        self.points_awarded_total = Counter(
            'gamify_points_awarded_total',
            'Total points awarded',
            ['source']
        )

        self.point_awards_total = Counter(
            'gamify_point_awards_total',
            'Number of point entries written',
            ['source']
        )

        self.badges_earned_total = Counter(
            'gamify_badges_earned_total',
            'Badges granted to users',
            ['rarity']
        )

        self.level_ups_total = Counter(
            'gamify_level_ups_total',
            'Detected level-up transitions'
        )

        self.streak_milestones_total = Counter(
            'gamify_streak_milestones_total',
            'Streak milestone rewards granted',
            ['day']
        )

        self.currency_transactions_total = Counter(
            'gamify_currency_transactions_total',
            'Currency transactions recorded',
            ['type']
        )

        self.challenge_rewards_total = Counter(
            'gamify_challenge_rewards_distributed_total',
            'Challenges whose rewards were distributed',
            ['mode']
        )

        self.conflicts_total = Counter(
            'gamify_optimistic_conflicts_total',
            'Versioned writes that lost a race and were retried',
            ['record_type']
        )

        self.quests_completed_total = Counter(
            'gamify_quests_completed_total',
            'Quest progress rows that reached completion'
        )

        self.recognitions_total = Counter(
            'gamify_peer_recognitions_total',
            'Peer recognitions sent',
            ['type']
        )

        self._enabled = True
        logger.info("Prometheus metrics initialized")

    @property
    def enabled(self) -> bool:
        """Check if metrics are enabled"""
        return self._enabled


# Global metrics instance
metrics = PrometheusMetrics()


def track_points_awarded(source: str, amount: int) -> None:
    if not metrics.enabled:
        return
    metrics.point_awards_total.labels(source=source).inc()
    if amount > 0:
        metrics.points_awarded_total.labels(source=source).inc(amount)


def track_badge_earned(rarity: str) -> None:
    if not metrics.enabled:
        return
    metrics.badges_earned_total.labels(rarity=rarity).inc()


def track_level_up() -> None:
    if not metrics.enabled:
        return
    metrics.level_ups_total.inc()


def track_streak_milestone(day: int) -> None:
    if not metrics.enabled:
        return
    metrics.streak_milestones_total.labels(day=str(day)).inc()


def track_currency_transaction(transaction_type: str) -> None:
    if not metrics.enabled:
        return
    metrics.currency_transactions_total.labels(type=transaction_type).inc()


def track_challenge_distribution(team_based: bool) -> None:
    if not metrics.enabled:
        return
    metrics.challenge_rewards_total.labels(mode="team" if team_based else "individual").inc()


def track_conflict(record_type: str) -> None:
    if not metrics.enabled:
        return
    metrics.conflicts_total.labels(record_type=record_type).inc()


def track_quest_completed() -> None:
    if not metrics.enabled:
        return
    metrics.quests_completed_total.inc()


def track_recognition_sent(recognition_type: str) -> None:
    if not metrics.enabled:
        return
    metrics.recognitions_total.labels(type=recognition_type).inc()
