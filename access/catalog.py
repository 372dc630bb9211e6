"""
The built-in permission and role catalog.

Permission keys are the stable contract between route gates and the
database; ``seed_roles_and_permissions`` upserts both tables by key so it
can be re-run after every deploy. Bump ``CATALOG_VERSION`` whenever a key
or a role's grant list changes.
"""
import logging

from models import db, Permission, Role

logger = logging.getLogger(__name__)

CATALOG_VERSION = 1

# dashboard
VIEW_DASHBOARD = 'view_dashboard'
VIEW_ANALYTICS = 'view_analytics'
VIEW_REPORTS = 'view_reports'

# elections
CREATE_ELECTION = 'create_election'
VIEW_ELECTIONS = 'view_elections'
EDIT_ELECTION = 'edit_election'
DELETE_ELECTION = 'delete_election'
START_ELECTION = 'start_election'
CLOSE_ELECTION = 'close_election'
VIEW_ELECTION_RESULTS = 'view_election_results'

# users
VIEW_USERS = 'view_users'
CREATE_USER = 'create_user'
EDIT_USER = 'edit_user'
DELETE_USER = 'delete_user'
VERIFY_USER = 'verify_user'
VIEW_UNVERIFIED_USERS = 'view_unverified_users'
MANAGE_USER_ROLES = 'manage_user_roles'

# committees
VIEW_COMMITTEES = 'view_committees'
CREATE_COMMITTEE = 'create_committee'
EDIT_COMMITTEE = 'edit_committee'
DELETE_COMMITTEE = 'delete_committee'
MANAGE_COMMITTEE_MEMBERS = 'manage_committee_members'

# candidates
VIEW_CANDIDATES = 'view_candidates'
CREATE_CANDIDATE = 'create_candidate'
EDIT_CANDIDATE = 'edit_candidate'
DELETE_CANDIDATE = 'delete_candidate'
APPROVE_CANDIDATE = 'approve_candidate'

# votes
CAST_VOTE = 'cast_vote'
VIEW_OWN_VOTES = 'view_own_votes'
VIEW_ALL_VOTES = 'view_all_votes'
VIEW_VOTE_RESULTS = 'view_vote_results'

# system
MANAGE_SYSTEM_SETTINGS = 'manage_system_settings'
VIEW_SYSTEM_LOGS = 'view_system_logs'
MANAGE_BACKUPS = 'manage_backups'

# scoped to the caller's own committee
VIEW_OWN_COMMITTEE = 'view_own_committee'
MANAGE_OWN_COMMITTEE_MEMBERS = 'manage_own_committee_members'
VIEW_COMMITTEE_ANALYTICS = 'view_committee_analytics'

# (key, name, description, category), in catalog order
PERMISSIONS = (
    (VIEW_DASHBOARD, 'View Dashboard', 'Access to main dashboard', 'dashboard_access'),
    (VIEW_ANALYTICS, 'View Analytics', 'Access to analytics and reports', 'dashboard_access'),
    (VIEW_REPORTS, 'View Reports', 'Access to system reports', 'dashboard_access'),

    (CREATE_ELECTION, 'Create Election', 'Create new elections', 'election_management'),
    (VIEW_ELECTIONS, 'View Elections', 'View all elections', 'election_management'),
    (EDIT_ELECTION, 'Edit Election', 'Edit election details', 'election_management'),
    (DELETE_ELECTION, 'Delete Election', 'Delete elections', 'election_management'),
    (START_ELECTION, 'Start Election', 'Start elections', 'election_management'),
    (CLOSE_ELECTION, 'Close Election', 'Close elections', 'election_management'),
    (VIEW_ELECTION_RESULTS, 'View Election Results', 'View election results', 'election_management'),

    (VIEW_USERS, 'View Users', 'View all users', 'user_management'),
    (CREATE_USER, 'Create User', 'Create new users', 'user_management'),
    (EDIT_USER, 'Edit User', 'Edit user details', 'user_management'),
    (DELETE_USER, 'Delete User', 'Delete users', 'user_management'),
    (VERIFY_USER, 'Verify User', 'Verify user accounts', 'user_management'),
    (VIEW_UNVERIFIED_USERS, 'View Unverified Users', 'View unverified users', 'user_management'),
    (MANAGE_USER_ROLES, 'Manage User Roles', 'Assign and modify user roles', 'user_management'),

    (VIEW_COMMITTEES, 'View Committees', 'View all committees', 'committee_management'),
    (CREATE_COMMITTEE, 'Create Committee', 'Create new committees', 'committee_management'),
    (EDIT_COMMITTEE, 'Edit Committee', 'Edit committee details', 'committee_management'),
    (DELETE_COMMITTEE, 'Delete Committee', 'Delete committees', 'committee_management'),
    (MANAGE_COMMITTEE_MEMBERS, 'Manage Committee Members', 'Add/remove committee members', 'committee_management'),

    (VIEW_CANDIDATES, 'View Candidates', 'View all candidates', 'candidate_management'),
    (CREATE_CANDIDATE, 'Create Candidate', 'Register as candidate', 'candidate_management'),
    (EDIT_CANDIDATE, 'Edit Candidate', 'Edit candidate details', 'candidate_management'),
    (DELETE_CANDIDATE, 'Delete Candidate', 'Delete candidates', 'candidate_management'),
    (APPROVE_CANDIDATE, 'Approve Candidate', 'Approve candidate registrations', 'candidate_management'),

    (CAST_VOTE, 'Cast Vote', 'Cast votes in elections', 'vote_management'),
    (VIEW_OWN_VOTES, 'View Own Votes', 'View personal voting history', 'vote_management'),
    (VIEW_ALL_VOTES, 'View All Votes', 'View all votes (admin)', 'vote_management'),
    (VIEW_VOTE_RESULTS, 'View Vote Results', 'View election results', 'vote_management'),

    (MANAGE_SYSTEM_SETTINGS, 'Manage System Settings', 'Modify system settings', 'system_settings'),
    (VIEW_SYSTEM_LOGS, 'View System Logs', 'Access system logs', 'system_settings'),
    (MANAGE_BACKUPS, 'Manage Backups', 'Create and restore backups', 'system_settings'),

    (VIEW_OWN_COMMITTEE, 'View Own Committee', 'View own committee details and members', 'committee_specific'),
    (MANAGE_OWN_COMMITTEE_MEMBERS, 'Manage Own Committee Members', 'Add/remove members from own committee', 'committee_specific'),
    (VIEW_COMMITTEE_ANALYTICS, 'View Committee Analytics', 'View analytics for own committee', 'committee_specific'),
)

ALL_PERMISSIONS = tuple(p[0] for p in PERMISSIONS)

_VOTER_PERMISSIONS = (
    VIEW_DASHBOARD,
    VIEW_ELECTIONS,
    VIEW_ELECTION_RESULTS,
    CAST_VOTE,
    VIEW_OWN_VOTES,
    VIEW_CANDIDATES,
)

ROLES = (
    {
        'key': 'admin',
        'name': 'Administrator',
        'description': 'Full system access with all permissions',
        'permissions': ALL_PERMISSIONS,
    },
    {
        'key': 'election_manager',
        'name': 'Election Manager',
        'description': 'Can manage elections and view results',
        'permissions': (
            VIEW_DASHBOARD, VIEW_ANALYTICS, VIEW_REPORTS,
            CREATE_ELECTION, VIEW_ELECTIONS, EDIT_ELECTION, DELETE_ELECTION,
            START_ELECTION, CLOSE_ELECTION, VIEW_ELECTION_RESULTS,
            VIEW_CANDIDATES, APPROVE_CANDIDATE,
            VIEW_ALL_VOTES, VIEW_VOTE_RESULTS,
        ),
    },
    {
        'key': 'committee_head',
        'name': 'Committee Head',
        'description': 'Can manage committee members and view committee data',
        'permissions': (
            VIEW_DASHBOARD,
            VIEW_COMMITTEES, EDIT_COMMITTEE, MANAGE_COMMITTEE_MEMBERS,
            VIEW_CANDIDATES, CREATE_CANDIDATE,
            VIEW_ELECTIONS, VIEW_ELECTION_RESULTS, VIEW_VOTE_RESULTS,
            VIEW_OWN_COMMITTEE, MANAGE_OWN_COMMITTEE_MEMBERS, VIEW_COMMITTEE_ANALYTICS,
        ),
    },
    {
        'key': 'member',
        'name': 'Member',
        'description': 'Basic member with voting rights',
        'permissions': _VOTER_PERMISSIONS,
    },
    {
        'key': 'board_candidate',
        'name': 'Board Candidate',
        'description': 'Member running for board position',
        'permissions': _VOTER_PERMISSIONS,
    },
    {
        'key': 'president_candidate',
        'name': 'President Candidate',
        'description': 'Member running for president position',
        'permissions': _VOTER_PERMISSIONS,
    },
)

ROLE_KEYS = tuple(r['key'] for r in ROLES)

# roles allowed to register candidacies through the public candidate route
CANDIDATE_REGISTRATION_ROLES = ('member', 'board_candidate', 'president_candidate', 'admin')


def seed_roles_and_permissions():
    """Upsert every permission and role by key. Returns (permissions, roles)."""
    by_key = {p.key: p for p in Permission.query.all()}
    for key, name, description, category in PERMISSIONS:
        perm = by_key.get(key)
        if perm is None:
            perm = Permission(key=key)
            db.session.add(perm)
            by_key[key] = perm
        perm.name = name
        perm.description = description
        perm.category = category
    db.session.flush()

    roles = []
    for spec in ROLES:
        role = Role.query.filter_by(key=spec['key']).first()
        if role is None:
            role = Role(key=spec['key'], is_active=True)
            db.session.add(role)
        role.name = spec['name']
        role.description = spec['description']
        role.permissions = [by_key[k] for k in spec['permissions']]
        roles.append(role)

    db.session.commit()
    logger.info("Seeded %d permissions and %d roles (catalog v%d)",
                len(PERMISSIONS), len(roles), CATALOG_VERSION)
    return [by_key[p[0]] for p in PERMISSIONS], roles
