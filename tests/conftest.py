"""
Test configuration and fixtures: an app on in-memory SQLite with the role
catalog seeded, plus factories for users, committees, elections and
candidates.
"""
import itertools
from datetime import timedelta

import pytest

from access.catalog import seed_roles_and_permissions
from access.tokens import generate_access_token
from app import create_app
from config import TestingConfig
from models import db, utcnow
from services import candidates as candidate_service
from services import committees as committee_service
from services import elections as election_service
from services import users as user_service


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
        seed_roles_and_permissions()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def now():
    return utcnow()


@pytest.fixture
def make_user(app):
    counter = itertools.count(1)

    def _make(role='member', verified=True, email=None, password='password123'):
        return user_service.create_user(
            email or f'user{next(counter)}@example.com',
            password,
            role_key=role,
            is_verified=verified,
        )
    return _make


@pytest.fixture
def admin(make_user):
    return make_user(role='admin', email='admin@example.com')


@pytest.fixture
def make_committee(admin, make_user):
    counter = itertools.count(1)

    def _make(members=None, name=None):
        if members is None:
            members = [make_user()]
        return committee_service.create_committee(
            name or f'Committee {next(counter)}',
            'Handles committee business',
            [m.id for m in members],
            created_by=admin,
        )
    return _make


@pytest.fixture
def make_election(admin, now):
    def _make(election_type='president', committee=None, start=None, end=None, title=None):
        start = start or now - timedelta(hours=1)
        end = end or now + timedelta(days=1)
        return election_service.create_election(
            election_type,
            title or f'{election_type.title()} election',
            start,
            end,
            created_by=admin,
            committee_id=committee.id if committee else None,
            now=now,
        )
    return _make


@pytest.fixture
def make_candidate():
    def _make(user, election, name=None, status=None):
        return candidate_service.create_candidate(
            user.id,
            election.id,
            election.election_type,
            name or user.email.split('@')[0],
            status=status,
            committee_id=election.committee_id,
        )
    return _make


@pytest.fixture
def auth_headers(app):
    def _headers(user):
        return {'Authorization': f'Bearer {generate_access_token(user)}'}
    return _headers
