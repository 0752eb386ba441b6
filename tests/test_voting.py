from datetime import timedelta

import pytest

from hackpoints.errors import (
    InsufficientSessionDurationError,
    NotEnoughScrapsError,
    NotOrganizerError,
    ScrapNotFoundError,
    SelfVoteError,
    SessionNotFoundError,
    VoteNotFoundError,
    VoteRateLimitError,
)
from hackpoints.identity import Identity
from hackpoints.models import SessionStatus, TransactionStatus
from hackpoints.schemas import ScrapCreate, VoteFilters


@pytest.mark.asyncio
async def test_scrap_needs_a_long_enough_session(scrapper, users, clock):
    with pytest.raises(SessionNotFoundError):
        await scrapper.create_scrap(users.alice.id, ScrapCreate(title="Early"))

    await scrapper.start_session(users.alice.id)
    clock.advance(minutes=30)
    await scrapper.pause_session(users.alice.id)
    clock.advance(hours=2)

    with pytest.raises(InsufficientSessionDurationError) as excinfo:
        await scrapper.create_scrap(users.alice.id, ScrapCreate(title="Early"))
    assert excinfo.value.minutes == 30
    assert excinfo.value.required_minutes == 60
    assert (await scrapper.get_current_session(users.alice.id)).status == SessionStatus.PAUSED


@pytest.mark.asyncio
async def test_scrap_submission_completes_the_session(scrapper, points, users, clock):
    alice = users.alice.id
    started = await scrapper.start_session(alice)
    clock.advance(minutes=90)

    scrap = await scrapper.create_scrap(
        alice,
        ScrapCreate(title="Parser", description="Pratt parser", attachment_urls=["https://example.com/a.png"]),
    )

    assert scrap.session_id == started.id
    assert scrap.base_points == 15
    assert scrap.total_points == 15
    assert scrap.attachment_urls == ["https://example.com/a.png"]
    assert scrap.user_id == alice

    assert await scrapper.get_current_session(alice) is None
    session = await scrapper.get_session_by_id(started.id)
    assert session.status == SessionStatus.COMPLETED
    assert session.completed_at == clock.now()
    assert await points.get_balance(alice) == 15

    found = await scrapper.get_scrap_by_id(scrap.id)
    assert found.user_name == "Alice"
    assert await scrapper.get_scrap_by_id(9999) is None


@pytest.mark.asyncio
async def test_scrap_needs_an_open_session(scrapper, points, users, clock, make_scrap):
    alice = users.alice.id
    await make_scrap(alice, "First")
    with pytest.raises(SessionNotFoundError):
        await scrapper.create_scrap(alice, ScrapCreate(title="Follow-up"))

    await scrapper.start_session(alice)
    clock.advance(hours=2)
    await scrapper.cancel_session(alice)
    with pytest.raises(SessionNotFoundError):
        await scrapper.create_scrap(alice, ScrapCreate(title="After cancel"))

    assert await scrapper.get_scrap_count_since(clock.now() - timedelta(days=1)) == 1
    assert await points.get_balance(alice) == 20


@pytest.mark.asyncio
async def test_recent_scraps_newest_first(scrapper, users, clock, make_scrap):
    await make_scrap(users.alice.id, "Alice's scrap")
    clock.advance(minutes=1)
    await make_scrap(users.bob.id, "Bob's scrap")

    recent = await scrapper.get_recent_scraps(5)
    assert [(s.title, s.user_name) for s in recent] == [("Bob's scrap", "Bob"), ("Alice's scrap", "Alice")]
    assert [s.title for s in await scrapper.get_recent_scraps(1)] == ["Bob's scrap"]


@pytest.mark.asyncio
async def test_vote_pays_voter_and_creator(scrapper, points, users, make_scrap):
    alice_scrap = await make_scrap(users.alice.id, "Alice's scrap")
    bob_scrap = await make_scrap(users.bob.id, "Bob's scrap")

    vote = await scrapper.vote_on_scrap(users.dave.id, alice_scrap.id, bob_scrap.id)

    assert vote.points_awarded == 2
    assert await points.get_balance(users.dave.id) == 1
    # 20 for the two-hour session, 2 for the vote
    assert await points.get_balance(users.alice.id) == 22
    assert await points.get_balance(users.bob.id) == 20
    assert (await scrapper.get_scrap_by_id(alice_scrap.id)).total_points == 22

    voter_tx = await points.get_transaction(vote.voter_transaction_id)
    creator_tx = await points.get_transaction(vote.creator_transaction_id)
    assert voter_tx.status == TransactionStatus.APPROVED
    assert creator_tx.user_id == users.alice.id
    assert creator_tx.reason == f"Received vote on scrap #{alice_scrap.id} (2 hours)"


@pytest.mark.asyncio
async def test_vote_rejections(scrapper, users, make_scrap):
    alice_scrap = await make_scrap(users.alice.id, "Alice's scrap")
    bob_scrap = await make_scrap(users.bob.id, "Bob's scrap")

    with pytest.raises(SelfVoteError):
        await scrapper.vote_on_scrap(users.alice.id, alice_scrap.id, bob_scrap.id)
    with pytest.raises(ScrapNotFoundError):
        await scrapper.vote_on_scrap(users.dave.id, 9999, bob_scrap.id)
    with pytest.raises(ScrapNotFoundError):
        await scrapper.vote_on_scrap(users.dave.id, alice_scrap.id, 9999)
    with pytest.raises(ValueError):
        await scrapper.vote_on_scrap(users.dave.id, alice_scrap.id, alice_scrap.id)

    assert await scrapper.get_vote_count(VoteFilters()) == 0


@pytest.mark.asyncio
async def test_rate_limit_uses_trailing_window(scrapper, users, clock, make_scrap):
    alice_scrap = await make_scrap(users.alice.id, "Alice's scrap")
    bob_scrap = await make_scrap(users.bob.id, "Bob's scrap")
    dave = users.dave.id

    assert await scrapper.rate_limiter.seconds_until_next_vote(dave) == 0
    first_vote_at = clock.now()
    for _ in range(5):
        await scrapper.vote_on_scrap(dave, alice_scrap.id, bob_scrap.id)
        clock.advance(minutes=1)

    assert await scrapper.rate_limiter.votes_in_last_hour(dave) == 5
    assert await scrapper.rate_limiter.oldest_vote_time_in_last_hour(dave) == first_vote_at
    with pytest.raises(VoteRateLimitError) as excinfo:
        await scrapper.vote_on_scrap(dave, bob_scrap.id, alice_scrap.id)
    assert excinfo.value.retry_after_seconds == 55 * 60

    clock.advance(minutes=55)
    assert await scrapper.rate_limiter.votes_in_last_hour(dave) == 4
    assert await scrapper.rate_limiter.seconds_until_next_vote(dave) == 0
    await scrapper.vote_on_scrap(dave, bob_scrap.id, alice_scrap.id)


@pytest.mark.asyncio
async def test_random_pair_excludes_own_and_voted_scraps(scrapper, users, make_scrap):
    alice_scrap = await make_scrap(users.alice.id, "Alice's scrap")
    bob_scrap = await make_scrap(users.bob.id, "Bob's scrap")

    first, second = await scrapper.get_random_scraps_for_voting(users.dave.id)
    assert {first.id, second.id} == {alice_scrap.id, bob_scrap.id}

    with pytest.raises(NotEnoughScrapsError):
        await scrapper.get_random_scraps_for_voting(users.alice.id)

    await scrapper.vote_on_scrap(users.dave.id, alice_scrap.id, bob_scrap.id)
    with pytest.raises(NotEnoughScrapsError):
        await scrapper.get_random_scraps_for_voting(users.dave.id)


@pytest.mark.asyncio
async def test_invalidate_vote_reverses_its_points(scrapper, points, users, organizer, make_scrap):
    alice_scrap = await make_scrap(users.alice.id, "Alice's scrap")
    bob_scrap = await make_scrap(users.bob.id, "Bob's scrap")
    vote = await scrapper.vote_on_scrap(users.dave.id, alice_scrap.id, bob_scrap.id)

    result = await scrapper.invalidate_vote(organizer, vote.id)

    assert result.deleted_vote
    assert not result.is_partial
    assert sorted(result.deleted_transaction_ids) == sorted(
        [vote.voter_transaction_id, vote.creator_transaction_id]
    )
    assert await points.get_balance(users.dave.id) == 0
    assert await points.get_balance(users.alice.id) == 20
    assert (await scrapper.get_scrap_by_id(alice_scrap.id)).total_points == 20
    assert await scrapper.get_vote_count(VoteFilters()) == 0
    assert (await points.get_transaction(vote.creator_transaction_id)).status == TransactionStatus.DELETED


@pytest.mark.asyncio
async def test_invalidate_vote_reports_ledger_failures(scrapper, points, users, organizer, make_scrap):
    alice_scrap = await make_scrap(users.alice.id, "Alice's scrap")
    bob_scrap = await make_scrap(users.bob.id, "Bob's scrap")
    vote = await scrapper.vote_on_scrap(users.dave.id, alice_scrap.id, bob_scrap.id)
    await points.review(vote.creator_transaction_id, users.carol.id, TransactionStatus.DELETED)

    result = await scrapper.invalidate_vote(organizer, vote.id)

    assert result.deleted_vote
    assert result.is_partial
    assert result.deleted_transaction_ids == [vote.voter_transaction_id]
    assert [e.transaction_id for e in result.transaction_errors] == [vote.creator_transaction_id]
    assert await scrapper.get_vote_count(VoteFilters()) == 0


@pytest.mark.asyncio
async def test_invalidate_vote_requires_organizer(scrapper, users, organizer):
    with pytest.raises(NotOrganizerError):
        await scrapper.invalidate_vote(Identity(user_id=users.bob.id), 1)
    with pytest.raises(VoteNotFoundError):
        await scrapper.invalidate_vote(organizer, 9999)


@pytest.mark.asyncio
async def test_vote_listing_and_stats(scrapper, users, clock, make_scrap):
    alice_scrap = await make_scrap(users.alice.id, "Alice's scrap")
    bob_scrap = await make_scrap(users.bob.id, "Bob's scrap")
    await scrapper.vote_on_scrap(users.dave.id, alice_scrap.id, bob_scrap.id)
    clock.advance(minutes=1)
    await scrapper.vote_on_scrap(users.dave.id, bob_scrap.id, alice_scrap.id)
    clock.advance(minutes=1)
    await scrapper.vote_on_scrap(users.carol.id, alice_scrap.id, bob_scrap.id)

    votes = await scrapper.get_votes(VoteFilters(user_id=users.dave.id))
    assert [v.scrap_title for v in votes] == ["Bob's scrap", "Alice's scrap"]
    assert votes[0].voter_name == "Dave"
    assert votes[0].other_scrap_title == "Alice's scrap"

    stats = await scrapper.get_vote_stats()
    assert stats.total_votes == 3
    assert stats.last_hour_votes == 3
    assert stats.average_votes_per_user == 1.5
    assert stats.top_voters[0].user_name == "Dave"
    assert stats.top_voters[0].vote_count == 2

    activity = await scrapper.get_user_voting_activity()
    assert [(a.user_name, a.total_votes) for a in activity] == [("Dave", 2), ("Carol", 1)]
    assert activity[0].last_vote_time == clock.now() - timedelta(minutes=1)
    assert await scrapper.get_vote_count_since(clock.now() - timedelta(minutes=2)) == 2
