import logging
from datetime import timedelta

from errors import ConflictError, NotFoundError, ValidationError
from models import db, Candidate, Committee, Election, OPEN_ELECTION_STATUSES, User, utcnow
from services import atomic
from utils.helpers import coerce_ids, commit, parse_bool, require_fields, require_str

logger = logging.getLogger(__name__)

NAME_TAKEN = "Committee name already exists"


def get_committee(committee_id, lock=False):
    committee = db.session.get(Committee, committee_id, with_for_update=True if lock else None)
    if committee is None:
        raise NotFoundError("Committee not found")
    return committee


def list_committees(is_active=None):
    q = Committee.query
    if is_active is not None:
        q = q.filter(Committee.is_active.is_(is_active))
    return q.order_by(Committee.created_at.desc(), Committee.id.desc()).all()


def list_members(committee_id):
    return list(get_committee(committee_id).members)


def list_user_committees(user):
    if user.committee_id is None:
        return []
    return Committee.query.filter_by(id=user.committee_id, is_active=True).all()


def _join(user, committee, joined_at):
    user.committee = committee
    user.committee_joined_at = joined_at


def _leave(user):
    user.committee = None
    user.committee_joined_at = None


@atomic
def create_committee(name, description, member_ids, created_by):
    require_fields({'name': name, 'description': description}, 'name', 'description')
    name = require_str(name, 'name')
    description = require_str(description, 'description')
    member_ids = coerce_ids(member_ids, 'members')
    if not member_ids:
        raise ValidationError("Committee must have at least one member")
    if Committee.query.filter_by(name=name).first():
        raise ConflictError(NAME_TAKEN)

    users = {u.id: u for u in User.query.filter(User.id.in_(member_ids)).with_for_update().all()}
    invalid = [i for i in member_ids if i not in users or not users[i].is_verified]
    if invalid:
        raise ValidationError("Some members are invalid or not verified", payload={
            'invalid_members': invalid,
        })
    taken = [users[i] for i in member_ids if users[i].committee_id is not None]
    if taken:
        raise ValidationError("Some members already belong to other committees", payload={
            'existing_members': [{'id': u.id, 'email': u.email} for u in taken],
        })

    committee = Committee(name=name, description=description, created_by_id=created_by.id)
    db.session.add(committee)
    # keep the submitted order as join order
    joined = utcnow()
    for offset, member_id in enumerate(member_ids):
        _join(users[member_id], committee, joined + timedelta(microseconds=offset))
    committee.check_members()

    commit(NAME_TAKEN)
    logger.info("Committee %s '%s' created with %d members", committee.id, committee.name, len(member_ids))
    return committee


@atomic
def update_committee(committee_id, name=None, description=None, is_active=None):
    committee = get_committee(committee_id, lock=True)
    if name is not None:
        name = require_str(name, 'name')
        if not name:
            raise ValidationError("name cannot be empty")
        other = Committee.query.filter(Committee.name == name, Committee.id != committee.id).first()
        if other:
            raise ConflictError(NAME_TAKEN)
        committee.name = name
    if description is not None:
        description = require_str(description, 'description')
        if not description:
            raise ValidationError("description cannot be empty")
        committee.description = description
    if is_active is not None:
        is_active = parse_bool(is_active, 'is_active')
        if committee.is_active and not is_active:
            _ensure_no_open_elections(committee, 'deactivate')
        committee.is_active = is_active

    commit(NAME_TAKEN)
    logger.info("Committee %s updated", committee.id)
    return committee


def deactivate_committee(committee_id):
    return update_committee(committee_id, is_active=False)


@atomic
def delete_committee(committee_id):
    """
    Members are released; closed elections and their candidates keep
    their rows with the committee link cleared.
    """
    committee = get_committee(committee_id, lock=True)
    _ensure_no_open_elections(committee, 'delete')
    for member in list(committee.members):
        _leave(member)
    db.session.delete(committee)
    commit()
    logger.info("Committee %s deleted", committee_id)


@atomic
def add_member(committee_id, user_id):
    committee = get_committee(committee_id, lock=True)
    if not committee.is_active:
        raise ValidationError("Cannot add members to inactive committee")
    user = db.session.get(User, user_id, with_for_update=True)
    if user is None:
        raise NotFoundError("User not found")
    if not user.is_verified:
        raise ValidationError("Only verified users can be added to committees")
    if committee.is_member(user):
        raise ConflictError("User is already a member of this committee")
    if user.committee_id is not None:
        raise ValidationError("User already belongs to another committee")

    _join(user, committee, utcnow())
    commit()
    logger.info("User %s joined committee %s", user.id, committee.id)
    return committee


@atomic
def remove_member(committee_id, user_id):
    committee = get_committee(committee_id, lock=True)
    user = db.session.get(User, user_id, with_for_update=True)
    if user is None or not committee.is_member(user):
        raise NotFoundError("User is not a member of this committee")

    running = (
        Candidate.query
        .join(Election, Candidate.election_id == Election.id)
        .filter(
            Candidate.user_id == user.id,
            Candidate.committee_id == committee.id,
            Candidate.status == 'active',
            Election.status == 'active',
        )
        .all()
    )
    if running:
        raise ValidationError("Cannot remove member who is an active candidate in ongoing elections", payload={
            'active_elections': [
                {'election_id': c.election_id, 'election_title': c.election.title, 'candidate_name': c.name}
                for c in running
            ],
        })
    if len(committee.members) <= 1:
        raise ValidationError("Committee must have at least one member")

    _leave(user)
    commit()
    logger.info("User %s left committee %s", user.id, committee.id)
    return committee


def _ensure_no_open_elections(committee, action):
    blocking = (
        Election.query
        .filter(Election.committee_id == committee.id, Election.status.in_(OPEN_ELECTION_STATUSES))
        .order_by(Election.start_date)
        .all()
    )
    if blocking:
        raise ValidationError(f"Cannot {action} committee with active or draft elections", payload={
            'active_elections': [e.summary() for e in blocking],
        })
