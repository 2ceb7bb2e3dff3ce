"""Unit tests for peer-given social badges"""

import pytest
from datetime import timedelta

from gamify.exceptions import DuplicateSocialBadgeError, RecordNotFoundError, SocialBadgeError
from gamify.models import Badge, BadgeRarity, SocialBadgeGrant, UserBadge
from gamify.utils.datetime_helpers import now_utc


@pytest.fixture
def create_social_badge(engine):
    async def _create(name="Team player", rarity=BadgeRarity.COMMON):
        return await engine.badges.create_badge(
            Badge(name=name, category="social", rarity=rarity, social_badge=True)
        )
    return _create


@pytest.mark.asyncio
async def test_give_social_badge(engine, store, create_social_badge):
    badge = await create_social_badge(rarity=BadgeRarity.RARE)

    grant = await engine.social_badges.give_social_badge("alice", "bob", badge.id, message="Thanks!")

    assert grant.from_user_id == "alice"
    assert grant.to_user_id == "bob"
    assert grant.message == "Thanks!"
    assert await store.user_has_badge("bob", badge.id)
    assert await engine.points.get_total("bob") == 50
    assert await engine.points.get_total("alice") == 0


@pytest.mark.asyncio
async def test_cannot_give_badge_to_yourself(engine, create_social_badge):
    badge = await create_social_badge()

    with pytest.raises(SocialBadgeError) as exc_info:
        await engine.social_badges.give_social_badge("alice", "alice", badge.id)

    assert exc_info.value.status_code == 400


@pytest.mark.asyncio
async def test_unknown_badge(engine):
    with pytest.raises(RecordNotFoundError):
        await engine.social_badges.give_social_badge("alice", "bob", "no-such-badge")


@pytest.mark.asyncio
async def test_automatic_badge_cannot_be_given(engine):
    badge = await engine.badges.create_badge(Badge(name="Starter", category="general"))

    with pytest.raises(SocialBadgeError):
        await engine.social_badges.give_social_badge("alice", "bob", badge.id)


@pytest.mark.asyncio
async def test_same_badge_once_per_day(engine, store, create_social_badge):
    badge = await create_social_badge()
    await engine.social_badges.give_social_badge("alice", "bob", badge.id)

    with pytest.raises(DuplicateSocialBadgeError):
        await engine.social_badges.give_social_badge("carol", "bob", badge.id)

    assert await engine.points.get_total("bob") == 10


@pytest.mark.asyncio
async def test_other_recipient_same_day_is_allowed(engine, create_social_badge):
    badge = await create_social_badge()

    await engine.social_badges.give_social_badge("alice", "bob", badge.id)
    await engine.social_badges.give_social_badge("alice", "carol", badge.id)

    assert await engine.points.get_total("carol") == 10


@pytest.mark.asyncio
async def test_grant_from_previous_day_does_not_block(engine, store, create_social_badge):
    badge = await create_social_badge()
    await store.add_social_badge_grant(
        SocialBadgeGrant(
            from_user_id="alice",
            to_user_id="bob",
            badge_id=badge.id,
            given_at=now_utc() - timedelta(days=2),
        )
    )

    grant = await engine.social_badges.give_social_badge("carol", "bob", badge.id)

    assert grant.from_user_id == "carol"
    # Repeat grants on later days keep paying, the badge itself is held once
    assert len(await engine.social_badges.get_user_social_badges("bob")) == 1


@pytest.mark.asyncio
async def test_social_listing_excludes_automatic_badges(engine, create_social_badge):
    social = await create_social_badge()
    automatic = await engine.badges.create_badge(Badge(name="Starter", category="general"))
    await engine.store.insert_user_badge(
        UserBadge(user_id="bob", badge_id=automatic.id)
    )
    await engine.social_badges.give_social_badge("alice", "bob", social.id)

    listed = await engine.social_badges.get_social_badges()
    held = await engine.social_badges.get_user_social_badges("bob")

    assert [b.id for b in listed] == [social.id]
    assert [ub.badge_id for ub in held] == [social.id]
