import logging

from errors import ConflictError, NotFoundError, ValidationError
from models import db, Candidate, CANDIDATE_STATUSES, Vote
from services import atomic
from services.elections import check_election_type
from utils.helpers import coerce_id, commit, require_fields, require_str

logger = logging.getLogger(__name__)

DUPLICATE = "Candidate already exists for this user/election"


def _check_status(status):
    if status not in CANDIDATE_STATUSES:
        raise ValidationError("status must be 'active' or 'withdrawn'")


def get_candidate(candidate_id):
    candidate = db.session.get(Candidate, candidate_id)
    if candidate is None:
        raise NotFoundError("Candidate not found")
    return candidate


def list_candidates(election_id=None, candidate_type=None, status=None, committee_id=None):
    q = Candidate.query
    if election_id is not None:
        q = q.filter(Candidate.election_id == election_id)
    if candidate_type is not None:
        check_election_type(candidate_type)
        q = q.filter(Candidate.candidate_type == candidate_type)
    if status is not None:
        _check_status(status)
        q = q.filter(Candidate.status == status)
    if committee_id is not None:
        q = q.filter(Candidate.committee_id == committee_id)
    return q.order_by(Candidate.created_at.desc(), Candidate.id.desc()).all()


@atomic
def create_candidate(user_id, election_id, candidate_type, name, status=None, committee_id=None):
    """
    Register a candidacy. Election/committee/membership coherence is
    checked when the row is flushed (see ``Candidate.check_integrity``).
    """
    require_fields(
        {'user_id': user_id, 'election_id': election_id, 'candidate_type': candidate_type, 'name': name},
        'user_id', 'election_id', 'candidate_type', 'name',
    )
    name = require_str(name, 'name')
    check_election_type(candidate_type)
    user_id = coerce_id(user_id, 'user_id')
    election_id = coerce_id(election_id, 'election_id')

    if candidate_type == 'board':
        if committee_id is None:
            raise ValidationError("committee_id is required for board candidates")
        committee_id = coerce_id(committee_id, 'committee_id')
    elif committee_id is not None:
        raise ValidationError("committee_id is not allowed for president candidates")

    status = status or 'active'
    _check_status(status)

    if Candidate.query.filter_by(user_id=user_id, election_id=election_id).first():
        raise ConflictError(DUPLICATE)

    candidate = Candidate(
        user_id=user_id,
        election_id=election_id,
        candidate_type=candidate_type,
        name=name,
        status=status,
        committee_id=committee_id,
    )
    db.session.add(candidate)
    commit(DUPLICATE)
    logger.info("Candidate %s registered for election %s", candidate.id, election_id)
    return candidate


@atomic
def update_candidate(candidate_id, user_id=None, candidate_type=None, name=None, status=None):
    candidate = get_candidate(candidate_id)
    if user_id is not None:
        candidate.user_id = coerce_id(user_id, 'user_id')
    if candidate_type is not None:
        check_election_type(candidate_type)
        candidate.candidate_type = candidate_type
    if name is not None:
        name = require_str(name, 'name')
        if not name:
            raise ValidationError("name cannot be empty")
        candidate.name = name
    if status is not None:
        _check_status(status)
        candidate.status = status

    commit(DUPLICATE)
    logger.info("Candidate %s updated", candidate.id)
    return candidate


def withdraw_candidate(candidate_id):
    return update_candidate(candidate_id, status='withdrawn')


@atomic
def delete_candidate(candidate_id):
    candidate = get_candidate(candidate_id)
    if Vote.query.filter_by(candidate_id=candidate.id).first():
        raise ValidationError("Cannot delete candidate with recorded votes; withdraw the candidacy instead")
    db.session.delete(candidate)
    commit()
    logger.info("Candidate %s deleted", candidate_id)
