"""Scores, ladder switching, match format and standings."""
from datetime import datetime

import pytest
from sqlmodel import select

from ladder.models.availability import Availability
from ladder.models.ladder import Ladder
from ladder.models.match import Match
from ladder.models.user import User

WEEK_START = "2025-06-02T00:00:00Z"
T1 = "2025-06-03T18:00:00Z"


@pytest.fixture
def second_ladder(session):
    ladder = Ladder(name="Ladder 2", number=2, end_date=datetime(2025, 12, 31))
    session.add(ladder)
    session.commit()
    session.refresh(ladder)
    return ladder


def _match(session, ladder, team1, team2, start=datetime(2025, 6, 3, 18), **fields):
    team1, team2 = sorted([team1, team2])
    match = Match(start_at=start, team1_id=team1, team2_id=team2, ladder_id=ladder.id, **fields)
    session.add(match)
    session.commit()
    session.refresh(match)
    return match


def _result(session, ladder, winner, loser, won=2, lost=0):
    """Completed match stored as a canonical pair with the scores on the right sides."""
    team1, team2 = sorted([winner, loser])
    scores = (won, lost) if team1 == winner else (lost, won)
    return _match(
        session, ladder, team1, team2,
        completed=True, team1_score=scores[0], team2_score=scores[1],
    )


class TestScores:
    def test_record_marks_completed(self, client, session, ladder, make_user, auth_headers):
        a = make_user("a@example.com", ladder=ladder)
        b = make_user("b@example.com", ladder=ladder)
        match = _match(session, ladder, a.id, b.id)

        response = client.post(
            "/api/scores",
            json={
                "scores": [
                    {
                        "matchId": match.id,
                        "team1Score": 2,
                        "team2Score": 1,
                        "team1DetailedScore": "6,3,10",
                        "team2DetailedScore": "4,6,7",
                    }
                ]
            },
            headers=auth_headers(a),
        )

        assert response.status_code == 200
        assert response.json()["updated"] == 1
        session.expire_all()
        stored = session.get(Match, match.id)
        assert stored.completed is True
        assert (stored.team1_score, stored.team2_score) == (2, 1)
        assert stored.team1_detailed_score == "6,3,10"

    def test_any_player_may_enter_scores(self, client, session, ladder, make_user, auth_headers):
        a = make_user("a@example.com", ladder=ladder)
        b = make_user("b@example.com", ladder=ladder)
        stranger = make_user("s@example.com", ladder=ladder)
        match = _match(session, ladder, a.id, b.id)
        response = client.post(
            "/api/scores",
            json={"scores": [{"matchId": match.id, "team1Score": 0, "team2Score": 2}]},
            headers=auth_headers(stranger),
        )
        assert response.status_code == 200

    def test_unknown_match_rolls_back_the_batch(self, client, session, ladder, make_user, auth_headers):
        a = make_user("a@example.com", ladder=ladder)
        b = make_user("b@example.com", ladder=ladder)
        match = _match(session, ladder, a.id, b.id)

        response = client.post(
            "/api/scores",
            json={
                "scores": [
                    {"matchId": match.id, "team1Score": 2, "team2Score": 0},
                    {"matchId": "missing", "team1Score": 2, "team2Score": 0},
                ]
            },
            headers=auth_headers(a),
        )

        assert response.status_code == 404
        session.expire_all()
        assert session.get(Match, match.id).completed is False

    def test_negative_score_rejected(self, client, session, ladder, make_user, auth_headers):
        a = make_user("a@example.com", ladder=ladder)
        b = make_user("b@example.com", ladder=ladder)
        match = _match(session, ladder, a.id, b.id)
        response = client.post(
            "/api/scores",
            json={"scores": [{"matchId": match.id, "team1Score": -1, "team2Score": 2}]},
            headers=auth_headers(a),
        )
        assert response.status_code == 400

    def test_week_scores_include_score_line(self, client, session, ladder, make_user, auth_headers):
        a = make_user("a@example.com", ladder=ladder)
        b = make_user("b@example.com", ladder=ladder)
        _match(
            session, ladder, a.id, b.id,
            completed=True, team1_score=2, team2_score=0,
            team1_detailed_score="6,6,X", team2_detailed_score="1,2,X",
        )
        response = client.get("/api/scores", params={"weekStart": WEEK_START}, headers=auth_headers(a))
        matches = response.json()["matches"]
        assert len(matches) == 1
        assert matches[0]["scoreLine"] == "6-1 6-2"


class TestLadders:
    def test_list_ladders(self, client, ladder, second_ladder, make_user, auth_headers):
        me = make_user("me@example.com", ladder=second_ladder)
        body = client.get("/api/ladders", headers=auth_headers(me)).json()
        assert body["currentLadder"]["id"] == second_ladder.id
        assert [l["number"] for l in body["allLadders"]] == [1, 2]
        assert body["allLadders"][0]["matchFormat"] == {"sets": 3, "gamesPerSet": 6, "winnerBy": "sets"}

    def test_switch_moves_partner_and_wipes_history(
        self, client, session, ladder, second_ladder, make_user, auth_headers
    ):
        a = make_user("a@example.com", ladder=ladder)
        b = make_user("b@example.com", ladder=ladder, partner=a)
        c = make_user("c@example.com", ladder=ladder)
        team = "-".join(sorted([a.id, b.id]))
        _match(session, ladder, team, c.id)
        _match(session, ladder, a.id, c.id, start=datetime(2025, 6, 4, 18))
        client.post("/api/availability", json={"weekStartISO": WEEK_START, "slots": [T1]}, headers=auth_headers(b))

        response = client.post(
            "/api/ladder/switch", json={"newLadderId": second_ladder.id}, headers=auth_headers(a)
        )

        assert response.status_code == 200
        assert response.json()["movedUsers"] == 2
        session.expire_all()
        assert session.get(User, a.id).ladder_id == second_ladder.id
        assert session.get(User, b.id).ladder_id == second_ladder.id
        assert session.get(User, c.id).ladder_id == ladder.id
        assert session.exec(select(Match)).all() == []
        assert session.exec(select(Availability)).all() == []

    def test_switch_to_same_ladder_is_noop(self, client, session, ladder, make_user, auth_headers):
        a = make_user("a@example.com", ladder=ladder)
        c = make_user("c@example.com", ladder=ladder)
        _match(session, ladder, a.id, c.id)
        response = client.post("/api/ladder/switch", json={"newLadderId": ladder.id}, headers=auth_headers(a))
        assert response.json()["message"] == "Already in this ladder"
        session.expire_all()
        assert len(session.exec(select(Match)).all()) == 1

    def test_switch_to_inactive_ladder(self, client, session, ladder, make_user, auth_headers):
        closed = Ladder(name="Old", number=9, end_date=datetime(2024, 1, 1), is_active=False)
        session.add(closed)
        session.commit()
        a = make_user("a@example.com", ladder=ladder)
        response = client.post("/api/ladder/switch", json={"newLadderId": closed.id}, headers=auth_headers(a))
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid or inactive ladder"}

    def test_create_ladder_takes_lowest_free_number(
        self, client, session, ladder, make_user, auth_headers
    ):
        session.add(Ladder(name="Three", number=3, end_date=datetime(2025, 12, 31)))
        session.commit()
        a = make_user("a@example.com", ladder=ladder)
        b = make_user("b@example.com", ladder=ladder, partner=a)

        response = client.post(
            "/api/ladders/create",
            json={"name": "Summer", "endDate": "2025-09-30T00:00:00Z"},
            headers=auth_headers(a),
        )

        created = response.json()["ladder"]
        assert created["number"] == 2
        session.expire_all()
        assert session.get(User, b.id).ladder_id == created["id"]

    def test_create_ladder_clears_movers_history(self, client, session, ladder, make_user, auth_headers):
        a = make_user("a@example.com", ladder=ladder)
        b = make_user("b@example.com", ladder=ladder, partner=a)
        c = make_user("c@example.com", ladder=ladder)
        d = make_user("d@example.com", ladder=ladder)
        _match(session, ladder, "-".join(sorted([a.id, b.id])), c.id)
        _match(session, ladder, c.id, d.id, start=datetime(2025, 6, 4, 18))
        for user in (a, c):
            client.post(
                "/api/availability", json={"weekStartISO": WEEK_START, "slots": [T1]}, headers=auth_headers(user)
            )

        response = client.post(
            "/api/ladders/create",
            json={"name": "Summer", "endDate": "2025-09-30T00:00:00Z"},
            headers=auth_headers(a),
        )

        assert response.status_code == 200
        session.expire_all()
        remaining = session.exec(select(Match)).all()
        assert [(m.team1_id, m.team2_id) for m in remaining] == [tuple(sorted([c.id, d.id]))]
        assert [row.user_id for row in session.exec(select(Availability)).all()] == [c.id]

    def test_update_format_reshapes_scores(self, client, session, ladder, make_user, auth_headers):
        a = make_user("a@example.com", ladder=ladder)
        c = make_user("c@example.com", ladder=ladder)
        match = _match(
            session, ladder, a.id, c.id,
            completed=True, team1_score=2, team2_score=1,
            team1_detailed_score="6,3,10", team2_detailed_score="4,6,7",
        )

        response = client.post(
            "/api/ladders/update-format",
            json={"ladderId": ladder.id, "newMatchFormat": {"sets": 5, "gamesPerSet": 6, "winnerBy": "games"}},
            headers=auth_headers(a),
        )

        assert response.json()["updatedMatches"] == 1
        assert response.json()["ladder"]["matchFormat"]["winnerBy"] == "games"
        session.expire_all()
        assert session.get(Match, match.id).team1_detailed_score == "6,3,10,X,X"

    def test_update_format_validates(self, client, ladder, make_user, auth_headers):
        a = make_user("a@example.com", ladder=ladder)
        response = client.post(
            "/api/ladders/update-format",
            json={"ladderId": ladder.id, "newMatchFormat": {"sets": 0, "gamesPerSet": 6}},
            headers=auth_headers(a),
        )
        assert response.status_code == 400

    def test_standings(self, client, session, ladder, second_ladder, make_user, auth_headers):
        a = make_user("a@example.com", ladder=ladder, name="Amy")
        b = make_user("b@example.com", ladder=ladder, name="Ben")
        c = make_user("c@example.com", ladder=ladder, name="Cat")
        _result(session, ladder, a.id, b.id)
        _result(session, ladder, a.id, c.id, won=2, lost=1)
        _result(session, ladder, b.id, c.id)

        body = client.get("/api/ladders/standings", headers=auth_headers(a)).json()

        first = body["ladders"][0]
        assert first["number"] == 1
        names = [row["teamName"] for row in first["standings"]]
        assert names[0] == "Amy"
        assert first["standings"][0]["wins"] == 2
        assert body["ladders"][1]["standings"] == []
