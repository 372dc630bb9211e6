from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from errors import AuthorizationError, ConflictError, IntegrityViolation, NotFoundError, ValidationError
from models import db, Vote
from services import candidates as candidate_service
from services import committees as committee_service
from services import elections as election_service
from services import results as result_service
from services import votes as vote_service


@pytest.fixture
def board(make_user, make_committee, make_election, make_candidate):
    """Committee of two verified members, an open board election and one candidate."""
    member1, member2 = make_user(), make_user()
    committee = make_committee(members=[member1, member2])
    election = make_election('board', committee=committee)
    candidate = make_candidate(member1, election, name='A')
    return committee, election, candidate, member1, member2


@pytest.fixture
def president(make_user, make_election, make_candidate):
    election = make_election('president')
    alice = make_candidate(make_user(), election, name='Alice')
    bob = make_candidate(make_user(), election, name='Bob')
    return election, alice, bob


def test_board_referendum_scenario(board):
    committee, election, candidate, member1, member2 = board

    vote = vote_service.cast_vote(member1, 'board', candidate.id, board_choice='yes')
    assert vote.election_id == election.id
    assert vote.board_choice == 'yes'

    with pytest.raises(ConflictError, match="already voted for this board candidate"):
        vote_service.cast_vote(member1, 'board', candidate.id, board_choice='no')

    vote_service.cast_vote(member2, 'board', candidate.id, board_choice='no')

    results = result_service.get_results('board')
    assert results['total_votes'] == 2
    assert results['results'] == [{
        'candidate_id': candidate.id,
        'candidate_name': 'A',
        'total_votes': 2,
        'yes_votes': 1,
        'no_votes': 1,
        'yes_percentage': 50.0,
        'no_percentage': 50.0,
    }]


def test_board_member_may_vote_on_each_candidate(board, make_user, make_candidate):
    committee, election, first, member1, member2 = board
    second = make_candidate(member2, election, name='B')

    vote_service.cast_vote(member1, 'board', first.id, board_choice='yes')
    vote_service.cast_vote(member1, 'board', second.id, board_choice='yes')

    assert Vote.query.filter_by(member_id=member1.id).count() == 2


def test_board_choice_is_required(board):
    committee, election, candidate, member1, member2 = board
    with pytest.raises(ValidationError, match="board_choice is required"):
        vote_service.cast_vote(member1, 'board', candidate.id)
    with pytest.raises(ValidationError, match="board_choice is required"):
        vote_service.cast_vote(member1, 'board', candidate.id, board_choice='maybe')


def test_only_committee_members_vote_in_board_elections(board, make_user):
    committee, election, candidate, member1, member2 = board
    outsider = make_user()

    with pytest.raises(IntegrityViolation, match="Only committee members can vote"):
        vote_service.cast_vote(outsider, 'board', candidate.id, board_choice='yes')
    assert Vote.query.count() == 0


def test_president_one_vote_per_member(president, make_user):
    election, alice, bob = president
    voter = make_user()

    vote_service.cast_vote(voter, 'president', alice.id)
    with pytest.raises(ConflictError, match="already voted in this president election"):
        vote_service.cast_vote(voter, 'president', bob.id)

    assert Vote.query.filter_by(member_id=voter.id).count() == 1


def test_president_index_rejects_second_ballot(president, make_user):
    """The partial unique index holds even when the service check is bypassed."""
    election, alice, bob = president
    voter = make_user()
    vote_service.cast_vote(voter, 'president', alice.id)

    db.session.add(Vote(
        election_id=election.id, member_id=voter.id, candidate_id=bob.id, election_type='president',
    ))
    with pytest.raises(IntegrityError):
        db.session.commit()
    db.session.rollback()


def test_president_rejects_board_choice(president, make_user):
    election, alice, bob = president
    with pytest.raises(ValidationError, match="not allowed for president"):
        vote_service.cast_vote(make_user(), 'president', alice.id, board_choice='yes')


def test_unverified_member_cannot_vote(president, make_user):
    election, alice, bob = president
    with pytest.raises(AuthorizationError):
        vote_service.cast_vote(make_user(verified=False), 'president', alice.id)


def test_no_open_election(make_user, make_election, make_candidate, now):
    election = make_election('president', start=now + timedelta(days=2), end=now + timedelta(days=3))
    candidate = make_candidate(make_user(), election)

    with pytest.raises(ValidationError, match="No active election found"):
        vote_service.cast_vote(make_user(), 'president', candidate.id)


def test_voting_window_is_enforced(president, make_user, now):
    election, alice, bob = president
    with pytest.raises(ValidationError, match="voting period has ended"):
        vote_service.cast_vote(make_user(), 'president', alice.id, now=now + timedelta(days=2))


def test_unknown_or_withdrawn_candidate(president, make_user):
    election, alice, bob = president
    with pytest.raises(NotFoundError):
        vote_service.cast_vote(make_user(), 'president', 99999)

    candidate_service.withdraw_candidate(bob.id)
    with pytest.raises(NotFoundError):
        vote_service.cast_vote(make_user(), 'president', bob.id)


def test_votes_are_immutable(president, make_user):
    election, alice, bob = president
    vote = vote_service.cast_vote(make_user(), 'president', alice.id)

    vote.candidate_id = bob.id
    with pytest.raises(IntegrityViolation, match="immutable"):
        db.session.flush()
    db.session.rollback()

    db.session.delete(db.session.get(Vote, vote.id))
    with pytest.raises(IntegrityViolation, match="cannot be deleted"):
        db.session.flush()
    db.session.rollback()


def test_closed_election_accepts_no_votes(president, make_user):
    election, alice, bob = president
    election_service.close_election(election.id)

    with pytest.raises(ValidationError, match="No active election found"):
        vote_service.cast_vote(make_user(), 'president', alice.id)


def test_member_vote_history(president, make_user):
    election, alice, bob = president
    voter = make_user()
    vote_service.cast_vote(voter, 'president', alice.id)

    history = vote_service.list_member_votes(voter)
    assert [v.candidate_id for v in history] == [alice.id]
    assert vote_service.list_member_votes(make_user()) == []


def test_remove_member_blocked_while_candidate_runs(board):
    committee, election, candidate, member1, member2 = board
    with pytest.raises(ValidationError, match="active candidate in ongoing elections"):
        committee_service.remove_member(committee.id, member1.id)


def test_export_votes_is_a_workbook(president, make_user):
    election, alice, bob = president
    vote_service.cast_vote(make_user(), 'president', alice.id)

    output = vote_service.export_votes()
    assert output.read(2) == b'PK'


def test_fractional_candidate_id_is_rejected(president, make_user):
    election, alice, bob = president
    voter = make_user()

    with pytest.raises(ValidationError, match="candidate_id must be an integer id"):
        vote_service.cast_vote(voter, 'president', alice.id + 0.9)
    with pytest.raises(ValidationError, match="candidate_id must be an integer id"):
        vote_service.cast_vote(voter, 'president', f'{alice.id}.5')
    assert Vote.query.count() == 0

    vote = vote_service.cast_vote(voter, 'president', float(alice.id))
    assert vote.candidate_id == alice.id
