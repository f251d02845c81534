from datetime import timedelta

from bazaar.identity import (
    GUEST_COOKIE,
    SESSION_COOKIE,
    GuestOwner,
    Role,
    SessionStore,
    UserOwner,
    UserStatus,
    hash_token,
    is_guest_id,
    new_guest_id,
)


async def test_session_round_trip(market):
    user = await market.user("Ama@Example.com")
    sessions = market.services.sessions

    issued = (await sessions.create(user.id)).unwrap()
    actor = (await sessions.validate(issued.token)).unwrap()

    assert len(issued.token) == 64
    assert hash_token(issued.token) != issued.token
    assert (actor.user_id, actor.role, actor.email) == (user.id, Role.BUYER, "ama@example.com")


async def test_unknown_and_revoked_tokens(market):
    user = await market.user("ama@example.com")
    sessions = market.services.sessions
    issued = (await sessions.create(user.id)).unwrap()

    assert (await sessions.validate("f" * 64)).unwrap() is None
    assert (await sessions.revoke(issued.token)).unwrap() is True
    assert (await sessions.validate(issued.token)).unwrap() is None


async def test_expired_session(market, session_factory):
    user = await market.user("ama@example.com")
    short = SessionStore(session_factory, ttl=timedelta(seconds=-1))
    issued = (await short.create(user.id)).unwrap()
    assert (await short.validate(issued.token)).unwrap() is None


async def test_banned_user_loses_session(market):
    user = await market.user("ama@example.com")
    sessions = market.services.sessions
    issued = (await sessions.create(user.id)).unwrap()

    await market.services.users.update(user.id, {"status": UserStatus.BANNED.value})

    assert (await sessions.validate(issued.token)).unwrap() is None


async def test_resolver_prefers_session_over_guest_cookie(market):
    user = await market.user("ama@example.com")
    issued = (await market.services.sessions.create(user.id)).unwrap()
    guest_id = new_guest_id()

    resolution = await market.services.identity.resolve({SESSION_COOKIE: issued.token, GUEST_COOKIE: guest_id})

    assert resolution.owner == UserOwner(user.id)
    assert resolution.actor.user_id == user.id
    assert not resolution.issued_guest


async def test_resolver_reuses_guest_cookie(market):
    guest_id = new_guest_id()
    resolution = await market.services.identity.resolve({GUEST_COOKIE: guest_id})
    assert resolution.owner == GuestOwner(guest_id)
    assert resolution.actor is None
    assert not resolution.issued_guest


async def test_resolver_mints_guest_id(market):
    for cookies in ({}, {GUEST_COOKIE: "not-a-guest-id"}, {SESSION_COOKIE: "stale"}):
        resolution = await market.services.identity.resolve(cookies)
        assert resolution.issued_guest
        assert is_guest_id(resolution.owner.owner_id)


def test_guest_ids():
    assert is_guest_id(new_guest_id())
    assert not is_guest_id("guest_")
    assert not is_guest_id("user_123")
