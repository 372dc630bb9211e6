from datetime import datetime, timezone

from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event, inspect, text
from sqlalchemy.orm import Session
from werkzeug.security import generate_password_hash, check_password_hash

from errors import IntegrityViolation

db = SQLAlchemy()
migrate = Migrate()

ELECTION_TYPES = ('board', 'president')
ELECTION_STATUSES = ('draft', 'active', 'closed')
OPEN_ELECTION_STATUSES = ('draft', 'active')
CANDIDATE_STATUSES = ('active', 'withdrawn')
BOARD_CHOICES = ('yes', 'no')
PERMISSION_CATEGORIES = (
    'election_management',
    'user_management',
    'committee_management',
    'candidate_management',
    'vote_management',
    'dashboard_access',
    'system_settings',
    'committee_specific',
)


def utcnow():
    """Naive UTC timestamp; every DateTime column stores naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _isoformat(value):
    return value.isoformat() if value else None


class TimestampMixin:
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)


# ----------------------
# Permission / Role
# ----------------------
role_permissions = db.Table(
    'role_permissions',
    db.Column('role_id', db.Integer, db.ForeignKey('roles.id', ondelete='CASCADE'), primary_key=True),
    db.Column('permission_id', db.Integer, db.ForeignKey('permissions.id', ondelete='CASCADE'), primary_key=True),
)


class Permission(TimestampMixin, db.Model):
    __tablename__ = 'permissions'

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(64), unique=True, nullable=False)
    name = db.Column(db.String(128), nullable=False)
    description = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(64), nullable=False, index=True)

    def to_dict(self):
        return {
            'key': self.key,
            'name': self.name,
            'description': self.description,
            'category': self.category,
        }


class Role(TimestampMixin, db.Model):
    __tablename__ = 'roles'

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(64), unique=True, nullable=False)
    name = db.Column(db.String(128), nullable=False)
    description = db.Column(db.String(255), nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False, index=True)

    # catalog order == insertion order of the permission rows
    permissions = db.relationship('Permission', secondary=role_permissions, order_by='Permission.id')

    @property
    def permission_keys(self):
        return [p.key for p in self.permissions]

    def to_dict(self):
        return {'key': self.key, 'name': self.name, 'description': self.description}


# ----------------------
# User: login account + committee membership
# ----------------------
class User(TimestampMixin, db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False)
    password_hash = db.Column(db.String(512), nullable=False)
    role_id = db.Column(db.Integer, db.ForeignKey('roles.id'), nullable=False, index=True)
    is_verified = db.Column(db.Boolean, default=False, nullable=False, index=True)

    # the one authoritative membership relation; Committee.members is derived from it
    committee_id = db.Column(
        db.Integer,
        db.ForeignKey('committees.id', name='fk_users_committee', use_alter=True),
        nullable=True,
        index=True,
    )
    committee_joined_at = db.Column(db.DateTime, nullable=True)

    role = db.relationship('Role')
    committee = db.relationship('Committee', back_populates='members', foreign_keys=[committee_id])

    def set_password(self, password):
        self.password_hash = generate_password_hash(
            password, method='pbkdf2:sha256:10000', salt_length=16
        )

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'role': self.role.key if self.role else None,
            'is_verified': self.is_verified,
            'committee_id': self.committee_id,
            'created_at': _isoformat(self.created_at),
        }

    def __repr__(self):
        return f"<User {self.id} {self.email}>"


# ----------------------
# Committee
# ----------------------
class Committee(TimestampMixin, db.Model):
    __tablename__ = 'committees'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), unique=True, nullable=False)
    description = db.Column(db.Text, nullable=False)
    created_by_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False, index=True)

    members = db.relationship(
        'User',
        back_populates='committee',
        foreign_keys='User.committee_id',
        order_by=lambda: (User.committee_joined_at, User.id),
    )
    creator = db.relationship('User', foreign_keys=[created_by_id])
    elections = db.relationship('Election', back_populates='committee')
    candidates = db.relationship('Candidate', back_populates='committee')

    def __init__(self, **kwargs):
        kwargs.setdefault('is_active', True)
        super().__init__(**kwargs)

    def is_member(self, user):
        if user is None:
            return False
        if user.committee is self:
            return True
        return self.id is not None and user.committee_id == self.id

    def check_members(self):
        if not self.members:
            raise IntegrityViolation("Committee must have at least one member")

    def to_dict(self, include_members=True):
        data = {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'is_active': self.is_active,
            'created_by': self.created_by_id,
            'member_count': len(self.members),
            'created_at': _isoformat(self.created_at),
        }
        if include_members:
            data['members'] = [m.to_dict() for m in self.members]
        return data


# ----------------------
# Election
# ----------------------
class Election(TimestampMixin, db.Model):
    __tablename__ = 'elections'

    # edits to these columns re-run check_integrity at flush
    INTEGRITY_FIELDS = ('election_type', 'start_date', 'end_date', 'committee_id', 'committee')

    id = db.Column(db.Integer, primary_key=True)
    election_type = db.Column(db.String(20), nullable=False)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    start_date = db.Column(db.DateTime, nullable=False)
    end_date = db.Column(db.DateTime, nullable=False)
    status = db.Column(db.String(20), default='draft', nullable=False)
    created_by_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    committee_id = db.Column(db.Integer, db.ForeignKey('committees.id'), nullable=True)

    committee = db.relationship('Committee', back_populates='elections')
    creator = db.relationship('User', foreign_keys=[created_by_id])
    candidates = db.relationship('Candidate', back_populates='election', cascade='all, delete-orphan')

    __table_args__ = (
        db.Index('ix_elections_type_status', 'election_type', 'status'),
        db.Index('ix_elections_status_window', 'status', 'start_date', 'end_date'),
        db.Index('ix_elections_committee_status', 'committee_id', 'status'),
    )

    def __init__(self, **kwargs):
        # column defaults only apply at INSERT, after the flush-time checks
        kwargs.setdefault('status', 'draft')
        super().__init__(**kwargs)

    def is_open(self, now):
        return self.status == 'active' and self.start_date <= now <= self.end_date

    def check_integrity(self, session):
        if self.election_type not in ELECTION_TYPES:
            raise IntegrityViolation("election_type must be 'board' or 'president'")
        if self.status not in ELECTION_STATUSES:
            raise IntegrityViolation(f"Invalid election status '{self.status}'")
        if self.end_date <= self.start_date:
            raise IntegrityViolation("End date must be after start date")

        committee = _related(session, self, 'committee', Committee, 'committee_id')
        if self.election_type == 'board':
            if committee is None and self.committee_id is None:
                raise IntegrityViolation("Committee is required for board elections")
            if committee is None or not committee.is_active:
                raise IntegrityViolation("Committee not found or inactive")
        elif committee is not None or self.committee_id is not None:
            raise IntegrityViolation("President elections cannot be linked to a committee")

    def summary(self):
        return {
            'id': self.id,
            'title': self.title,
            'status': self.status,
            'start_date': _isoformat(self.start_date),
            'end_date': _isoformat(self.end_date),
            'committee_id': self.committee_id,
        }

    def to_dict(self):
        data = self.summary()
        data.update({
            'election_type': self.election_type,
            'description': self.description,
            'created_by': self.created_by_id,
            'created_at': _isoformat(self.created_at),
        })
        return data


# ----------------------
# Candidate
# ----------------------
class Candidate(TimestampMixin, db.Model):
    __tablename__ = 'candidates'

    INTEGRITY_FIELDS = ('user_id', 'user', 'election_id', 'election', 'candidate_type', 'committee_id', 'committee')

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    election_id = db.Column(db.Integer, db.ForeignKey('elections.id'), nullable=False)
    candidate_type = db.Column(db.String(20), nullable=False)
    name = db.Column(db.String(120), nullable=False)
    status = db.Column(db.String(20), default='active', nullable=False)
    committee_id = db.Column(db.Integer, db.ForeignKey('committees.id'), nullable=True)

    user = db.relationship('User')
    election = db.relationship('Election', back_populates='candidates')
    committee = db.relationship('Committee', back_populates='candidates')

    __table_args__ = (
        db.UniqueConstraint('user_id', 'election_id', name='uq_candidates_user_election'),
        db.Index('ix_candidates_election_status', 'election_id', 'status'),
        db.Index('ix_candidates_committee_status', 'committee_id', 'status'),
    )

    def __init__(self, **kwargs):
        kwargs.setdefault('status', 'active')
        super().__init__(**kwargs)

    def check_integrity(self, session):
        if self.candidate_type not in ELECTION_TYPES:
            raise IntegrityViolation("candidate_type must be 'board' or 'president'")
        if self.status not in CANDIDATE_STATUSES:
            raise IntegrityViolation("status must be 'active' or 'withdrawn'")

        election = _related(session, self, 'election', Election, 'election_id')
        user = _related(session, self, 'user', User, 'user_id')
        if election is None:
            raise IntegrityViolation("Election not found")
        if user is None:
            raise IntegrityViolation("User not found")
        if election.election_type != self.candidate_type:
            raise IntegrityViolation("Candidate type must match election type")

        committee = _related(session, self, 'committee', Committee, 'committee_id')
        if self.candidate_type == 'board':
            if committee is None and self.committee_id is None:
                raise IntegrityViolation("Committee is required for board candidates")
            if committee is None or not committee.is_active:
                raise IntegrityViolation("Committee not found or inactive")
            if not committee.is_member(user):
                raise IntegrityViolation("User must be a member of the committee to run as board candidate")
            if election.committee_id != committee.id:
                raise IntegrityViolation("Candidate committee must match election committee")
        elif committee is not None or self.committee_id is not None:
            raise IntegrityViolation("President candidates cannot belong to a committee")

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'election_id': self.election_id,
            'candidate_type': self.candidate_type,
            'name': self.name,
            'status': self.status,
            'committee_id': self.committee_id,
            'created_at': _isoformat(self.created_at),
        }


# ----------------------
# Vote: append-only ballot records
# ----------------------
class Vote(db.Model):
    __tablename__ = 'votes'

    id = db.Column(db.Integer, primary_key=True)
    election_id = db.Column(db.Integer, db.ForeignKey('elections.id'), nullable=False)
    member_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    candidate_id = db.Column(db.Integer, db.ForeignKey('candidates.id'), nullable=False)
    election_type = db.Column(db.String(20), nullable=False)
    board_choice = db.Column(db.String(3), nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    election = db.relationship('Election')
    member = db.relationship('User')
    candidate = db.relationship('Candidate')

    __table_args__ = (
        # board: one yes/no per (member, candidate); also covers president
        db.UniqueConstraint('election_id', 'member_id', 'candidate_id', name='uq_votes_election_member_candidate'),
        # president: one vote per member per election
        db.Index(
            'uq_votes_president_member', 'election_id', 'member_id',
            unique=True,
            sqlite_where=text("election_type = 'president'"),
            postgresql_where=text("election_type = 'president'"),
        ),
        db.Index('ix_votes_election_candidate', 'election_id', 'candidate_id'),
        db.Index('ix_votes_member_created', 'member_id', 'created_at'),
    )

    def check_integrity(self, session):
        election = _related(session, self, 'election', Election, 'election_id')
        candidate = _related(session, self, 'candidate', Candidate, 'candidate_id')
        voter = _related(session, self, 'member', User, 'member_id')

        if election is None:
            raise IntegrityViolation("Election not found")
        if election.status != 'active':
            raise IntegrityViolation("Cannot vote in inactive election")
        if self.election_type != election.election_type:
            raise IntegrityViolation("Vote election type does not match election")

        if candidate is None:
            raise IntegrityViolation("Candidate not found")
        if candidate.election_id != election.id:
            raise IntegrityViolation("Candidate does not belong to this election")
        if candidate.candidate_type != election.election_type:
            raise IntegrityViolation("Candidate type does not match election type")
        if candidate.status != 'active':
            raise IntegrityViolation("Cannot vote for inactive candidate")

        if voter is None:
            raise IntegrityViolation("Voter not found")
        if not voter.is_verified:
            raise IntegrityViolation("Only verified users can vote")

        if election.election_type == 'board':
            if self.board_choice not in BOARD_CHOICES:
                raise IntegrityViolation("board_choice is required and must be yes|no for board election")
            committee = election.committee
            if committee is None:
                raise IntegrityViolation("Board election must be linked to a committee")
            if not committee.is_active:
                raise IntegrityViolation("Committee not found or inactive")
            if not committee.is_member(voter):
                raise IntegrityViolation("Only committee members can vote in board elections")
            if candidate.committee_id != committee.id:
                raise IntegrityViolation("Candidate must belong to the same committee as the election")
        elif self.board_choice is not None:
            raise IntegrityViolation("board_choice is not allowed for president elections")

    def to_dict(self):
        return {
            'id': self.id,
            'election_id': self.election_id,
            'member_id': self.member_id,
            'candidate_id': self.candidate_id,
            'candidate_name': self.candidate.name if self.candidate else None,
            'election_type': self.election_type,
            'board_choice': self.board_choice,
            'created_at': _isoformat(self.created_at),
        }


# ----------------------
# Operation log
# ----------------------
class OperationLog(db.Model):
    __tablename__ = 'operation_logs'

    id = db.Column(db.Integer, primary_key=True)
    user_type = db.Column(db.String(64))  # role key, or 'guest'
    user_id = db.Column(db.Integer, nullable=True)
    action = db.Column(db.String(1024))
    status_code = db.Column(db.Integer, nullable=True)
    timestamp = db.Column(db.DateTime, default=utcnow, index=True)
    ip_address = db.Column(db.String(50))

    def to_dict(self):
        return {
            'id': self.id,
            'timestamp': _isoformat(self.timestamp),
            'user_type': self.user_type,
            'user_id': self.user_id,
            'action': self.action,
            'status_code': self.status_code,
            'ip_address': self.ip_address,
        }

    def __repr__(self):
        return f"<Log {self.user_type}-{self.user_id}: {self.action}>"


# ----------------------
# Write-boundary validation
# ----------------------
def _related(session, obj, attr, model, fk):
    # an assigned relationship wins; otherwise the (possibly edited) FK column
    fk_value = getattr(obj, fk)
    if fk_value is None or inspect(obj).attrs[attr].history.has_changes():
        return getattr(obj, attr)
    return session.get(model, fk_value)


def _changed(obj, fields):
    state = inspect(obj)
    return any(state.attrs[name].history.has_changes() for name in fields)


@event.listens_for(Session, 'before_flush')
def check_integrity_before_flush(session, flush_context, instances):
    with session.no_autoflush:
        for obj in session.deleted:
            if isinstance(obj, Vote):
                raise IntegrityViolation("Votes cannot be deleted")

        for obj in session.dirty:
            if isinstance(obj, Vote) and session.is_modified(obj):
                raise IntegrityViolation("Votes are immutable once cast")
            if isinstance(obj, (Election, Candidate)) and _changed(obj, obj.INTEGRITY_FIELDS):
                obj.check_integrity(session)

        for obj in session.new:
            if isinstance(obj, (Election, Candidate, Vote)):
                obj.check_integrity(session)
