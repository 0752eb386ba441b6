from hackpoints.services.settlement import scrap_total_points, session_points, vote_settlement


def test_session_points_floor_hours_times_rate():
    assert session_points(5400, 10) == 15
    assert session_points(3599, 1) == 0
    assert session_points(3600, 100) == 100
    # 1h 20m at 100/h is 133.33...
    assert session_points(4800, 100) == 133


def test_session_points_zero_for_empty_session():
    assert session_points(0, 100) == 0
    assert session_points(-5, 100) == 0
    assert session_points(3600, 0) == 0


def test_vote_settlement_uses_creator_hours():
    settlement = vote_settlement(7200, voter_points=1, creator_points_per_hour=1)
    assert settlement.voter_points == 1
    assert settlement.creator_points == 2
    assert settlement.creator_hours == 2


def test_vote_settlement_short_session_pays_creator_nothing():
    settlement = vote_settlement(1800, voter_points=1, creator_points_per_hour=1)
    assert settlement.voter_points == 1
    assert settlement.creator_points == 0
    assert settlement.creator_hours == 0


def test_scrap_total_points():
    assert scrap_total_points(20, 2) == 22
    assert scrap_total_points(20, -3) == 20
