from ladder.services.score_parser import format_score_line, parse_detailed_scores, reshape_detailed_score


class TestParseDetailedScores:
    def test_three_sets(self):
        parsed = parse_detailed_scores("6,3,10", "4,6,7")
        assert parsed.sets == [(6, 4), (3, 6), (10, 7)]
        assert (parsed.team_a_sets_won, parsed.team_b_sets_won) == (2, 1)
        assert (parsed.team_a_games, parsed.team_b_games) == (19, 17)

    def test_unplayed_third_set(self):
        parsed = parse_detailed_scores("6,6,X", "2,1,x")
        assert parsed.sets == [(6, 2), (6, 1)]

    def test_blank_set_is_unplayed(self):
        parsed = parse_detailed_scores("6, ,", "3, ,")
        assert parsed.sets == [(6, 3)]

    def test_garbage_returns_none(self):
        assert parse_detailed_scores("6,abc", "4,6") is None

    def test_nothing_played_returns_none(self):
        assert parse_detailed_scores("X,X", "X,X") is None
        assert parse_detailed_scores(None, "6") is None


class TestReshape:
    def test_truncate(self):
        assert reshape_detailed_score("6,4,10", 2) == "6,4"

    def test_pad_with_x(self):
        assert reshape_detailed_score("6", 3) == "6,X,X"

    def test_none_stays_none(self):
        assert reshape_detailed_score(None, 3) is None


def test_format_score_line():
    assert format_score_line("6,3,X", "4,6,X") == "6-4 3-6"
    assert format_score_line(None, None) is None
