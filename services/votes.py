import logging
from io import BytesIO

import pandas as pd

from errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from models import db, BOARD_CHOICES, Candidate, Election, Vote, utcnow
from services import atomic
from services.elections import check_election_type
from utils.helpers import coerce_id, commit, require_fields

logger = logging.getLogger(__name__)

NO_OPEN_ELECTION = "No active election found for this type or voting period has ended"
DUPLICATE_VOTE = "Duplicate vote detected - you have already voted"


def open_elections(election_type, now, lock=False):
    q = Election.query.filter(
        Election.election_type == election_type,
        Election.status == 'active',
        Election.start_date <= now,
        Election.end_date >= now,
    )
    if lock:
        q = q.with_for_update()
    return q.all()


@atomic
def cast_vote(member, election_type, candidate_id, board_choice=None, now=None):
    """
    Record one ballot for ``member``.

    The election is the open election of ``election_type`` that the
    candidate belongs to. President: one vote per member per election.
    Board: one yes/no per member per candidate.
    """
    require_fields({'election_type': election_type, 'candidate_id': candidate_id},
                   'election_type', 'candidate_id')
    check_election_type(election_type)
    candidate_id = coerce_id(candidate_id, 'candidate_id')
    if not member.is_verified:
        raise AuthorizationError("Account verification required")

    if election_type == 'board':
        if board_choice not in BOARD_CHOICES:
            raise ValidationError("board_choice is required and must be 'yes' or 'no' for board election")
    elif board_choice is not None:
        raise ValidationError("board_choice is not allowed for president elections")

    now = now or utcnow()
    elections = open_elections(election_type, now, lock=True)
    if not elections:
        raise ValidationError(NO_OPEN_ELECTION)

    candidate = (
        Candidate.query
        .filter(
            Candidate.id == candidate_id,
            Candidate.election_id.in_([e.id for e in elections]),
            Candidate.candidate_type == election_type,
            Candidate.status == 'active',
        )
        .first()
    )
    if candidate is None:
        raise NotFoundError("Candidate not found for this election")
    election = candidate.election

    if election_type == 'president':
        if Vote.query.filter_by(election_id=election.id, member_id=member.id).first():
            raise ConflictError("You have already voted in this president election")
    elif Vote.query.filter_by(election_id=election.id, member_id=member.id, candidate_id=candidate.id).first():
        raise ConflictError("You have already voted for this board candidate")

    vote = Vote(
        election=election,
        member=member,
        candidate=candidate,
        election_type=election_type,
        board_choice=board_choice if election_type == 'board' else None,
    )
    db.session.add(vote)
    commit(DUPLICATE_VOTE)
    logger.info("Vote %s recorded in election %s", vote.id, election.id)
    return vote


def list_votes(election_type=None, election_id=None, candidate_id=None):
    q = Vote.query
    if election_type is not None:
        check_election_type(election_type)
        q = q.filter(Vote.election_type == election_type)
    if election_id is not None:
        q = q.filter(Vote.election_id == election_id)
    if candidate_id is not None:
        q = q.filter(Vote.candidate_id == candidate_id)
    return q.order_by(Vote.created_at.desc(), Vote.id.desc()).all()


def list_member_votes(member, election_type=None):
    q = Vote.query.filter(Vote.member_id == member.id)
    if election_type is not None:
        check_election_type(election_type)
        q = q.filter(Vote.election_type == election_type)
    return q.order_by(Vote.created_at.desc(), Vote.id.desc()).all()


def export_votes(election_type=None):
    """Every ballot as an .xlsx workbook in memory."""
    rows = [{
        'Vote ID': v.id,
        'Election': v.election.title,
        'Type': v.election_type,
        'Member': v.member.email,
        'Candidate': v.candidate.name,
        'Board choice': v.board_choice or '',
        'Cast at (UTC)': v.created_at.strftime('%Y-%m-%d %H:%M:%S'),
    } for v in list_votes(election_type=election_type)]

    df = pd.DataFrame(rows, columns=[
        'Vote ID', 'Election', 'Type', 'Member', 'Candidate', 'Board choice', 'Cast at (UTC)',
    ])
    output = BytesIO()
    with pd.ExcelWriter(output, engine='openpyxl') as writer:
        df.to_excel(writer, index=False, sheet_name='Votes')
    output.seek(0)
    return output
