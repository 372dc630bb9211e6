import pytest

from errors import ConflictError, IntegrityViolation, ValidationError
from models import db, Candidate
from services import candidates as candidate_service
from services import votes as vote_service


def test_register_president_candidate(make_user, make_election):
    user = make_user()
    election = make_election('president')

    candidate = candidate_service.create_candidate(user.id, election.id, 'president', 'Alice')

    assert candidate.status == 'active'
    assert candidate.committee_id is None
    assert candidate_service.list_candidates(election_id=election.id) == [candidate]


def test_one_candidacy_per_user_and_election(make_user, make_election, make_candidate):
    user = make_user()
    election = make_election('president')
    make_candidate(user, election)

    with pytest.raises(ConflictError, match="Candidate already exists for this user/election"):
        make_candidate(user, election)


def test_candidate_type_must_match_election(make_user, make_election):
    election = make_election('president')
    user = make_user()
    with pytest.raises(ValidationError, match="committee_id is required"):
        candidate_service.create_candidate(user.id, election.id, 'board', 'Bob')


def test_type_mismatch_caught_at_flush(make_user, make_committee, make_election):
    user = make_user()
    committee = make_committee(members=[user])
    president = make_election('president')

    with pytest.raises(IntegrityViolation, match="Candidate type must match election type"):
        candidate_service.create_candidate(user.id, president.id, 'board', 'Bob', committee_id=committee.id)
    assert Candidate.query.count() == 0


def test_board_candidate_must_be_committee_member(make_user, make_committee, make_election):
    committee = make_committee()
    election = make_election('board', committee=committee)
    outsider = make_user()

    with pytest.raises(IntegrityViolation, match="must be a member of the committee"):
        candidate_service.create_candidate(outsider.id, election.id, 'board', 'Outsider', committee_id=committee.id)


def test_board_candidate_committee_must_match_election(make_user, make_committee, make_election):
    member = make_user()
    own = make_committee(members=[member])
    other = make_committee()
    election = make_election('board', committee=other)

    with pytest.raises(IntegrityViolation, match="Candidate committee must match election committee"):
        candidate_service.create_candidate(member.id, election.id, 'board', 'Member', committee_id=own.id)


def test_president_candidate_cannot_have_committee(make_user, make_committee, make_election):
    committee = make_committee()
    election = make_election('president')
    with pytest.raises(ValidationError, match="not allowed for president"):
        candidate_service.create_candidate(make_user().id, election.id, 'president', 'X', committee_id=committee.id)


def test_unknown_election(make_user):
    with pytest.raises(IntegrityViolation, match="Election not found"):
        candidate_service.create_candidate(make_user().id, 9999, 'president', 'Ghost')


def test_update_and_withdraw(make_user, make_election, make_candidate):
    candidate = make_candidate(make_user(), make_election('president'), name='Old name')

    candidate_service.update_candidate(candidate.id, name='New name')
    candidate_service.withdraw_candidate(candidate.id)

    candidate = db.session.get(Candidate, candidate.id)
    assert candidate.name == 'New name'
    assert candidate.status == 'withdrawn'

    with pytest.raises(ValidationError, match="status must be"):
        candidate_service.update_candidate(candidate.id, status='retired')


def test_reassigning_user_is_revalidated(make_user, make_committee, make_election, make_candidate):
    member = make_user()
    committee = make_committee(members=[member])
    election = make_election('board', committee=committee)
    candidate = make_candidate(member, election)

    with pytest.raises(IntegrityViolation, match="must be a member of the committee"):
        candidate_service.update_candidate(candidate.id, user_id=make_user().id)
    assert db.session.get(Candidate, candidate.id).user_id == member.id


def test_delete_candidate(make_user, make_election, make_candidate):
    candidate = make_candidate(make_user(), make_election('president'))
    candidate_id = candidate.id

    candidate_service.delete_candidate(candidate_id)
    assert db.session.get(Candidate, candidate_id) is None


def test_candidate_with_votes_cannot_be_deleted(make_user, make_election, make_candidate):
    candidate = make_candidate(make_user(), make_election('president'))
    vote_service.cast_vote(make_user(), 'president', candidate.id)

    with pytest.raises(ValidationError, match="recorded votes"):
        candidate_service.delete_candidate(candidate.id)
