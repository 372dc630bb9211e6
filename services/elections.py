import logging

from errors import ConflictError, NotFoundError, ValidationError
from models import (
    db, Committee, Election, ELECTION_STATUSES, ELECTION_TYPES, OPEN_ELECTION_STATUSES, Vote, utcnow,
)
from services import atomic
from utils.helpers import coerce_id, commit, parse_datetime, require_fields, require_str

logger = logging.getLogger(__name__)


def check_election_type(election_type):
    if election_type not in ELECTION_TYPES:
        raise ValidationError("election_type must be 'board' or 'president'")


def get_election(election_id, lock=False):
    election = db.session.get(Election, election_id, with_for_update=True if lock else None)
    if election is None:
        raise NotFoundError("Election not found")
    return election


def list_elections(status=None, election_type=None, committee_id=None):
    q = Election.query
    if status is not None:
        if status not in ELECTION_STATUSES:
            raise ValidationError(f"Invalid election status '{status}'")
        q = q.filter(Election.status == status)
    if election_type is not None:
        check_election_type(election_type)
        q = q.filter(Election.election_type == election_type)
    if committee_id is not None:
        q = q.filter(Election.committee_id == committee_id)
    return q.order_by(Election.created_at.desc(), Election.id.desc()).all()


def list_active_elections(now=None):
    """Active elections whose window contains ``now``."""
    now = now or utcnow()
    return (
        Election.query
        .filter(Election.status == 'active', Election.start_date <= now, Election.end_date >= now)
        .order_by(Election.end_date)
        .all()
    )


def find_overlapping(election_type, start, end, committee_id=None, exclude_id=None):
    """
    First draft/active election of the same type (and same committee for
    board elections) whose window intersects [start, end].
    """
    q = Election.query.filter(
        Election.election_type == election_type,
        Election.status.in_(OPEN_ELECTION_STATUSES),
        Election.start_date <= end,
        Election.end_date >= start,
    )
    if election_type == 'board':
        q = q.filter(Election.committee_id == committee_id)
    if exclude_id is not None:
        q = q.filter(Election.id != exclude_id)
    return q.order_by(Election.start_date).first()


def _check_window(election_type, start, end, committee_id=None, exclude_id=None):
    if end <= start:
        raise ValidationError("End date must be after start date")
    conflict = find_overlapping(election_type, start, end, committee_id, exclude_id)
    if conflict:
        raise ConflictError("An election of this type already exists during the specified period", payload={
            'conflicting_election': conflict.summary(),
        })


@atomic
def create_election(election_type, title, start_date, end_date, created_by,
                    description=None, committee_id=None, now=None):
    require_fields(
        {'election_type': election_type, 'title': title, 'start_date': start_date, 'end_date': end_date},
        'election_type', 'title', 'start_date', 'end_date',
    )
    title = require_str(title, 'title')
    check_election_type(election_type)

    if election_type == 'board':
        if committee_id is None:
            raise ValidationError("committee_id is required for board elections")
        committee_id = coerce_id(committee_id, 'committee_id')
        committee = db.session.get(Committee, committee_id, with_for_update=True)
        if committee is None or not committee.is_active:
            raise ValidationError("Committee not found or inactive")
    elif committee_id is not None:
        raise ValidationError("committee_id is not allowed for president elections")

    start = parse_datetime(start_date, 'start_date')
    end = parse_datetime(end_date, 'end_date')
    _check_window(election_type, start, end, committee_id)

    now = now or utcnow()
    election = Election(
        election_type=election_type,
        title=title,
        description=require_str(description, 'description') if description is not None else None,
        start_date=start,
        end_date=end,
        status='active' if start <= now else 'draft',
        created_by_id=created_by.id,
        committee_id=committee_id,
    )
    db.session.add(election)
    commit()
    logger.info("Election %s (%s) created as %s", election.id, election_type, election.status)
    return election


def _start(election, now):
    if election.status != 'draft':
        raise ValidationError("Only draft elections can be started")
    if election.start_date > now:
        raise ValidationError("Cannot start election before its scheduled start date")
    election.status = 'active'


def _close(election):
    if election.status == 'draft':
        raise ValidationError("Cannot close a draft election")
    if election.status != 'active':
        raise ValidationError("Only active elections can be closed")
    election.status = 'closed'


def _transition(election, status, now):
    if status not in ELECTION_STATUSES:
        raise ValidationError(f"Invalid election status '{status}'")
    if status == 'active':
        _start(election, now)
    elif status == 'closed':
        _close(election)
    else:
        raise ValidationError("Elections cannot return to draft")


@atomic
def update_election(election_id, title=None, description=None, start_date=None,
                    end_date=None, status=None, now=None):
    election = get_election(election_id, lock=True)
    if election.status == 'closed':
        raise ValidationError("Cannot update closed elections")

    if title is not None:
        title = require_str(title, 'title')
        if not title:
            raise ValidationError("title cannot be empty")
        election.title = title
    if description is not None:
        election.description = require_str(description, 'description')

    if start_date is not None or end_date is not None:
        start = parse_datetime(start_date, 'start_date') if start_date is not None else election.start_date
        end = parse_datetime(end_date, 'end_date') if end_date is not None else election.end_date
        _check_window(election.election_type, start, end, election.committee_id, exclude_id=election.id)
        election.start_date = start
        election.end_date = end

    if status is not None and status != election.status:
        _transition(election, status, now or utcnow())

    commit()
    logger.info("Election %s updated (status=%s)", election.id, election.status)
    return election


@atomic
def start_election(election_id, now=None):
    election = get_election(election_id, lock=True)
    _start(election, now or utcnow())
    commit()
    logger.info("Election %s started", election.id)
    return election


@atomic
def close_election(election_id):
    election = get_election(election_id, lock=True)
    _close(election)
    commit()
    logger.info("Election %s closed", election.id)
    return election


@atomic
def delete_election(election_id):
    """Candidates go with the election; elections with ballots are kept."""
    election = get_election(election_id, lock=True)
    if election.status == 'active':
        raise ValidationError("Cannot delete active elections")
    if Vote.query.filter_by(election_id=election.id).first():
        raise ValidationError("Cannot delete election with recorded votes")
    db.session.delete(election)
    commit()
    logger.info("Election %s deleted", election_id)
