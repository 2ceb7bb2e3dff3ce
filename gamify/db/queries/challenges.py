"""Challenge, challenge progress and team membership queries"""
import logging
from typing import Optional

from psycopg.types.json import Jsonb

from gamify.db.connection import db
from gamify.exceptions import ConcurrencyError
from gamify.models import (
    Challenge,
    ChallengeProgress,
    ChallengeStatus,
    ChallengeTeamProgress,
    TeamMember,
)

logger = logging.getLogger(__name__)

_CHALLENGE_COLUMNS = (
    "id, title, description, objectives, rewards, team_based, participating_teams, "
    "participants, status, rewards_distributed, start_date, end_date"
)
_PROGRESS_COLUMNS = "challenge_id, progress, total_progress, completed, completed_at, created_at, version"


# ==========================================
# Challenges
# ==========================================

async def save_challenge(challenge: Challenge) -> Challenge:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"""
                INSERT INTO challenges ({_CHALLENGE_COLUMNS})
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                ON CONFLICT (id) DO UPDATE
                SET title = EXCLUDED.title,
                    description = EXCLUDED.description,
                    objectives = EXCLUDED.objectives,
                    rewards = EXCLUDED.rewards,
                    team_based = EXCLUDED.team_based,
                    participating_teams = EXCLUDED.participating_teams,
                    participants = EXCLUDED.participants,
                    status = EXCLUDED.status,
                    start_date = EXCLUDED.start_date,
                    end_date = EXCLUDED.end_date
                """,
                (
                    challenge.id,
                    challenge.title,
                    challenge.description,
                    Jsonb([o.model_dump(mode="json") for o in challenge.objectives]),
                    Jsonb(challenge.rewards.model_dump(mode="json")),
                    challenge.team_based,
                    Jsonb(challenge.participating_teams),
                    Jsonb(challenge.participants),
                    challenge.status.value,
                    challenge.rewards_distributed,
                    challenge.start_date,
                    challenge.end_date,
                )
            )
            await conn.commit()
            return challenge


async def get_challenge(challenge_id: str) -> Optional[Challenge]:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"SELECT {_CHALLENGE_COLUMNS} FROM challenges WHERE id = %s",
                (challenge_id,)
            )
            row = await cur.fetchone()
            return Challenge(**row) if row else None


async def list_challenges(
    status: Optional[ChallengeStatus] = None,
    team_id: Optional[str] = None
) -> list[Challenge]:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"""
                SELECT {_CHALLENGE_COLUMNS}
                FROM challenges
                WHERE (%s::text IS NULL OR status = %s)
                  AND (%s::text IS NULL OR participating_teams ? %s)
                ORDER BY start_date NULLS LAST, title
                """,
                (
                    status.value if status else None,
                    status.value if status else None,
                    team_id,
                    team_id,
                )
            )
            rows = await cur.fetchall()
            return [Challenge(**row) for row in rows]


async def mark_rewards_distributed(challenge_id: str) -> bool:
    """Flip rewards_distributed once; False when it was already set"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                UPDATE challenges
                SET rewards_distributed = TRUE
                WHERE id = %s AND rewards_distributed = FALSE
                RETURNING id
                """,
                (challenge_id,)
            )
            row = await cur.fetchone()
            await conn.commit()
            return row is not None


# ==========================================
# Progress
# ==========================================

async def _versioned_progress_write(table: str, key_column: str, progress, model):
    """Insert (version 0) or compare-and-swap update on version"""
    key_value = getattr(progress, key_column)
    values = (
        Jsonb([p.model_dump(mode="json") for p in progress.progress]),
        progress.total_progress,
        progress.completed,
        progress.completed_at,
    )
    extra_columns = ", rank" if table == "challenge_team_progress" else ""
    returning = f"{_PROGRESS_COLUMNS}, {key_column}{extra_columns}"

    async with db.connection() as conn:
        async with conn.cursor() as cur:
            if progress.version == 0:
                await cur.execute(
                    f"""
                    INSERT INTO {table} (challenge_id, {key_column}, progress, total_progress,
                                         completed, completed_at, created_at, version)
                    VALUES (%s, %s, %s, %s, %s, %s, %s, 1)
                    ON CONFLICT (challenge_id, {key_column}) DO NOTHING
                    RETURNING {returning}
                    """,
                    (progress.challenge_id, key_value, *values, progress.created_at)
                )
            else:
                await cur.execute(
                    f"""
                    UPDATE {table}
                    SET progress = %s,
                        total_progress = %s,
                        completed = %s,
                        completed_at = %s,
                        version = version + 1
                    WHERE challenge_id = %s AND {key_column} = %s AND version = %s
                    RETURNING {returning}
                    """,
                    (*values, progress.challenge_id, key_value, progress.version)
                )
            row = await cur.fetchone()
            await conn.commit()

    if row is None:
        raise ConcurrencyError(
            f"{table} ({progress.challenge_id}, {key_value}) changed since it was read",
            record_type=table,
            record_id=f"{progress.challenge_id}:{key_value}",
            expected_version=progress.version,
        )
    return model(**row)


async def get_team_progress(challenge_id: str, team_id: str) -> Optional[ChallengeTeamProgress]:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"""
                SELECT {_PROGRESS_COLUMNS}, team_id, rank
                FROM challenge_team_progress
                WHERE challenge_id = %s AND team_id = %s
                """,
                (challenge_id, team_id)
            )
            row = await cur.fetchone()
            return ChallengeTeamProgress(**row) if row else None


async def list_team_progress(challenge_id: str) -> list[ChallengeTeamProgress]:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"""
                SELECT {_PROGRESS_COLUMNS}, team_id, rank
                FROM challenge_team_progress
                WHERE challenge_id = %s
                """,
                (challenge_id,)
            )
            rows = await cur.fetchall()
            return [ChallengeTeamProgress(**row) for row in rows]


async def save_team_progress(progress: ChallengeTeamProgress) -> ChallengeTeamProgress:
    return await _versioned_progress_write(
        "challenge_team_progress", "team_id", progress, ChallengeTeamProgress
    )


async def set_team_ranks(challenge_id: str, ranks: dict[str, int]) -> None:
    if not ranks:
        return
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.executemany(
                """
                UPDATE challenge_team_progress
                SET rank = %s
                WHERE challenge_id = %s AND team_id = %s
                """,
                [(rank, challenge_id, team_id) for team_id, rank in ranks.items()]
            )
            await conn.commit()


async def get_user_progress(challenge_id: str, user_id: str) -> Optional[ChallengeProgress]:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"""
                SELECT {_PROGRESS_COLUMNS}, user_id
                FROM challenge_progress
                WHERE challenge_id = %s AND user_id = %s
                """,
                (challenge_id, user_id)
            )
            row = await cur.fetchone()
            return ChallengeProgress(**row) if row else None


async def list_user_progress(challenge_id: str, completed: Optional[bool] = None) -> list[ChallengeProgress]:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"""
                SELECT {_PROGRESS_COLUMNS}, user_id
                FROM challenge_progress
                WHERE challenge_id = %s
                  AND (%s::boolean IS NULL OR completed = %s)
                """,
                (challenge_id, completed, completed)
            )
            rows = await cur.fetchall()
            return [ChallengeProgress(**row) for row in rows]


async def save_user_progress(progress: ChallengeProgress) -> ChallengeProgress:
    return await _versioned_progress_write(
        "challenge_progress", "user_id", progress, ChallengeProgress
    )


# ==========================================
# Team membership
# ==========================================

async def save_team_member(member: TeamMember) -> TeamMember:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                INSERT INTO team_members (team_id, user_id, active)
                VALUES (%s, %s, %s)
                ON CONFLICT (team_id, user_id) DO UPDATE
                SET active = EXCLUDED.active
                """,
                (member.team_id, member.user_id, member.active)
            )
            await conn.commit()
            return member


async def get_active_team_members(team_id: str) -> list[TeamMember]:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT team_id, user_id, active
                FROM team_members
                WHERE team_id = %s AND active = TRUE
                """,
                (team_id,)
            )
            rows = await cur.fetchall()
            return [TeamMember(**row) for row in rows]
