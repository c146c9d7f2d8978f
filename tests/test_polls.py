"""
Unit tests for polls and the one-vote-per-user rule.
"""
import pytest
from datetime import datetime, timedelta

from society import models
from society.errors import Conflict
from society.services import voting


def get_auth_header(token: str) -> dict:
    """Helper function to create authorization header."""
    return {"Authorization": f"Bearer {token}"}


def voters(poll_json, option_index):
    return [u["id"] for u in poll_json["options"][option_index]["votes"]]


def total_votes(poll_json):
    return sum(len(o["votes"]) for o in poll_json["options"])


class TestPollCreation:
    """Tests for creating polls."""

    def test_admin_creates_poll(self, client, db_session, sample_notice, admin_token):
        end_date = (datetime.utcnow() + timedelta(days=7)).isoformat()
        response = client.post(
            "/polls/",
            headers=get_auth_header(admin_token),
            json={
                "notice_id": sample_notice.id,
                "question": "Repaint the gate?",
                "options": ["Yes", "No"],
                "end_date": end_date,
            },
        )
        assert response.status_code == 200
        data = response.json()
        assert [o["text"] for o in data["options"]] == ["Yes", "No"]
        assert all(o["votes"] == [] for o in data["options"])
        db_session.refresh(sample_notice)
        assert sample_notice.has_poll is True

    def test_create_poll_with_camel_case_fields(self, client, sample_notice, admin_token):
        """Test the frontend's camelCase field names are accepted."""
        response = client.post(
            "/polls/",
            headers=get_auth_header(admin_token),
            json={
                "noticeId": sample_notice.id,
                "question": "Move the AGM?",
                "options": ["Yes", "No"],
                "endDate": (datetime.utcnow() + timedelta(days=2)).isoformat(),
            },
        )
        assert response.status_code == 200
        assert response.json()["question"] == "Move the AGM?"

    def test_resident_cannot_create_poll(self, client, sample_notice, resident_token):
        response = client.post(
            "/polls/",
            headers=get_auth_header(resident_token),
            json={
                "notice_id": sample_notice.id,
                "question": "Q?",
                "options": ["A"],
                "end_date": datetime.utcnow().isoformat(),
            },
        )
        assert response.status_code == 403

    def test_poll_requires_options(self, client, sample_notice, admin_token):
        response = client.post(
            "/polls/",
            headers=get_auth_header(admin_token),
            json={
                "notice_id": sample_notice.id,
                "question": "Q?",
                "options": [],
                "end_date": datetime.utcnow().isoformat(),
            },
        )
        assert response.status_code == 400

    def test_poll_for_missing_notice(self, client, admin_token):
        response = client.post(
            "/polls/",
            headers=get_auth_header(admin_token),
            json={
                "notice_id": 99999,
                "question": "Q?",
                "options": ["A", "B"],
                "end_date": datetime.utcnow().isoformat(),
            },
        )
        assert response.status_code == 404

    def test_one_poll_per_notice(self, client, sample_poll, sample_notice, admin_token):
        response = client.post(
            "/polls/",
            headers=get_auth_header(admin_token),
            json={
                "notice_id": sample_notice.id,
                "question": "Another?",
                "options": ["A", "B"],
                "end_date": datetime.utcnow().isoformat(),
            },
        )
        assert response.status_code == 409

    def test_get_poll_for_notice(self, client, sample_poll, sample_notice, resident_token):
        response = client.get(f"/polls/notice/{sample_notice.id}", headers=get_auth_header(resident_token))
        assert response.status_code == 200
        assert response.json()["id"] == sample_poll.id
        assert len(response.json()["options"]) == 3

    def test_get_poll_missing(self, client, sample_notice, resident_token):
        response = client.get(f"/polls/notice/{sample_notice.id}", headers=get_auth_header(resident_token))
        assert response.status_code == 404


class TestVoting:
    """Tests for the vote endpoint."""

    def test_vote(self, client, resident, sample_poll, resident_token):
        option_id = sample_poll.options[0].id
        response = client.post(
            f"/polls/{sample_poll.id}/vote",
            headers=get_auth_header(resident_token),
            json={"option_id": option_id},
        )
        assert response.status_code == 200
        assert voters(response.json(), 0) == [resident.id]

    def test_vote_twice_conflicts(self, client, resident, sample_poll, resident_token):
        """Test second vote is rejected and leaves the tally untouched."""
        first = client.post(
            f"/polls/{sample_poll.id}/vote",
            headers=get_auth_header(resident_token),
            json={"option_id": sample_poll.options[0].id},
        )
        second = client.post(
            f"/polls/{sample_poll.id}/vote",
            headers=get_auth_header(resident_token),
            json={"option_id": sample_poll.options[1].id},
        )
        assert first.status_code == 200
        assert second.status_code == 409

        poll = client.get(
            f"/polls/notice/{sample_poll.notice_id}", headers=get_auth_header(resident_token)
        ).json()
        assert total_votes(poll) == 1
        assert voters(poll, 0) == [resident.id]

    def test_vote_after_end_date(self, client, poll_factory, sample_notice, resident_token):
        poll = poll_factory(sample_notice, datetime.utcnow() - timedelta(seconds=1))
        response = client.post(
            f"/polls/{poll.id}/vote",
            headers=get_auth_header(resident_token),
            json={"option_id": poll.options[0].id},
        )
        assert response.status_code == 409
        assert response.json()["detail"] == "Poll has ended"

    def test_vote_unknown_option(self, client, db_session, sample_poll, sample_notice, resident_token):
        response = client.post(
            f"/polls/{sample_poll.id}/vote",
            headers=get_auth_header(resident_token),
            json={"option_id": 99999},
        )
        assert response.status_code == 404

    def test_vote_missing_poll(self, client, resident_token):
        response = client.post(
            "/polls/99999/vote",
            headers=get_auth_header(resident_token),
            json={"option_id": 1},
        )
        assert response.status_code == 404

    def test_votes_from_different_users(self, client, sample_poll, resident, other_resident, resident_token, other_token):
        option_id = sample_poll.options[2].id
        client.post(f"/polls/{sample_poll.id}/vote", headers=get_auth_header(resident_token), json={"option_id": option_id})
        response = client.post(
            f"/polls/{sample_poll.id}/vote", headers=get_auth_header(other_token), json={"option_id": option_id}
        )
        assert response.status_code == 200
        assert sorted(voters(response.json(), 2)) == sorted([resident.id, other_resident.id])

    def test_database_rejects_racing_duplicate(self, db_session, resident, sample_poll, monkeypatch):
        """Test the unique constraint stops a vote that slipped past the pre-check."""
        db_session.add(
            models.PollVote(poll_id=sample_poll.id, option_id=sample_poll.options[0].id, user_id=resident.id)
        )
        db_session.commit()
        monkeypatch.setattr(voting, "has_voted", lambda db, poll_id, user_id: False)

        with pytest.raises(Conflict):
            voting.cast_vote(db_session, sample_poll.id, sample_poll.options[1].id, resident.id)

        votes = db_session.query(models.PollVote).filter(models.PollVote.user_id == resident.id).all()
        assert len(votes) == 1

    def test_vote_with_camel_case_option(self, client, resident, sample_poll, resident_token):
        response = client.post(
            f"/polls/{sample_poll.id}/vote",
            headers=get_auth_header(resident_token),
            json={"optionId": sample_poll.options[1].id},
        )
        assert response.status_code == 200
        assert voters(response.json(), 1) == [resident.id]


class TestChangeVote:
    """Tests for the change-vote endpoint."""

    def test_change_vote_moves_vote(self, client, resident, sample_poll, resident_token):
        option_a, option_b = sample_poll.options[0].id, sample_poll.options[1].id
        client.post(f"/polls/{sample_poll.id}/vote", headers=get_auth_header(resident_token), json={"option_id": option_a})

        response = client.put(
            f"/polls/{sample_poll.id}/change-vote",
            headers=get_auth_header(resident_token),
            json={"option_id": option_b},
        )
        assert response.status_code == 200
        data = response.json()
        assert resident.id not in voters(data, 0)
        assert voters(data, 1).count(resident.id) == 1

    def test_change_vote_with_camel_case_option(self, client, resident, sample_poll, resident_token):
        client.post(
            f"/polls/{sample_poll.id}/vote",
            headers=get_auth_header(resident_token),
            json={"optionId": sample_poll.options[0].id},
        )
        response = client.put(
            f"/polls/{sample_poll.id}/change-vote",
            headers=get_auth_header(resident_token),
            json={"optionId": sample_poll.options[2].id},
        )
        assert response.status_code == 200
        assert voters(response.json(), 2) == [resident.id]
        assert voters(response.json(), 0) == []

    def test_change_vote_without_prior_vote(self, client, resident, sample_poll, resident_token):
        """Test change-vote doubles as a first vote."""
        response = client.put(
            f"/polls/{sample_poll.id}/change-vote",
            headers=get_auth_header(resident_token),
            json={"option_id": sample_poll.options[2].id},
        )
        assert response.status_code == 200
        assert voters(response.json(), 2) == [resident.id]

    def test_change_vote_after_end_date(self, client, db_session, poll_factory, sample_notice, resident, resident_token):
        poll = poll_factory(sample_notice, datetime.utcnow() - timedelta(seconds=1))
        db_session.add(models.PollVote(poll_id=poll.id, option_id=poll.options[0].id, user_id=resident.id))
        db_session.commit()

        response = client.put(
            f"/polls/{poll.id}/change-vote",
            headers=get_auth_header(resident_token),
            json={"option_id": poll.options[1].id},
        )
        assert response.status_code == 409
        votes = db_session.query(models.PollVote).filter(models.PollVote.poll_id == poll.id).all()
        assert [v.option_id for v in votes] == [poll.options[0].id]

    def test_change_vote_unknown_option_keeps_vote(self, client, db_session, resident, sample_poll, resident_token):
        client.post(
            f"/polls/{sample_poll.id}/vote",
            headers=get_auth_header(resident_token),
            json={"option_id": sample_poll.options[0].id},
        )
        response = client.put(
            f"/polls/{sample_poll.id}/change-vote",
            headers=get_auth_header(resident_token),
            json={"option_id": 99999},
        )
        assert response.status_code == 404
        assert db_session.query(models.PollVote).filter(models.PollVote.user_id == resident.id).count() == 1

    def test_at_most_one_vote_after_any_sequence(self, client, resident, sample_poll, resident_token):
        headers = get_auth_header(resident_token)
        ids = [o.id for o in sample_poll.options]
        client.post(f"/polls/{sample_poll.id}/vote", headers=headers, json={"option_id": ids[0]})
        client.put(f"/polls/{sample_poll.id}/change-vote", headers=headers, json={"option_id": ids[1]})
        client.post(f"/polls/{sample_poll.id}/vote", headers=headers, json={"option_id": ids[2]})
        client.put(f"/polls/{sample_poll.id}/change-vote", headers=headers, json={"option_id": ids[2]})
        client.put(f"/polls/{sample_poll.id}/change-vote", headers=headers, json={"option_id": ids[2]})

        poll = client.get(f"/polls/notice/{sample_poll.notice_id}", headers=headers).json()
        appearances = sum(voters(poll, i).count(resident.id) for i in range(3))
        assert appearances == 1
        assert voters(poll, 2) == [resident.id]
