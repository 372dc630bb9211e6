from datetime import timedelta

from models import OperationLog


def test_healthz(client):
    res = client.get('/healthz')
    assert res.status_code == 200


def test_signup_verify_login_flow(client, admin, auth_headers):
    res = client.post('/auth/signup', json={'email': 'New@Example.com', 'password': 'secret123'})
    assert res.status_code == 201
    user = res.get_json()['user']
    assert user['email'] == 'new@example.com'
    assert user['role'] == 'member'
    assert user['is_verified'] is False

    res = client.post('/auth/login', json={'email': 'new@example.com', 'password': 'secret123'})
    assert res.status_code == 403

    res = client.get('/auth/unverified', headers=auth_headers(admin))
    assert [u['id'] for u in res.get_json()['users']] == [user['id']]

    res = client.patch(f"/auth/verify/{user['id']}", json={'is_verified': True}, headers=auth_headers(admin))
    assert res.status_code == 200

    res = client.post('/auth/login', json={'email': 'new@example.com', 'password': 'secret123'})
    assert res.status_code == 200
    tokens = res.get_json()
    assert tokens['token_type'] == 'Bearer'

    res = client.get('/auth/permissions', headers={'Authorization': f"Bearer {tokens['access_token']}"})
    body = res.get_json()
    assert body['role'] == 'member'
    assert 'cast_vote' in body['permissions']

    res = client.post('/auth/refresh', json={'refresh_token': tokens['refresh_token']})
    assert res.status_code == 200
    assert res.get_json()['access_token']


def test_wrong_password(client, make_user):
    make_user(email='someone@example.com')
    res = client.post('/auth/login', json={'email': 'someone@example.com', 'password': 'nope-nope'})
    assert res.status_code == 401
    assert res.get_json()['message'] == 'Invalid credentials'


def test_duplicate_signup(client, make_user):
    make_user(email='taken@example.com')
    res = client.post('/auth/signup', json={'email': 'taken@example.com', 'password': 'secret123'})
    assert res.status_code == 409


def test_missing_and_bad_tokens(client):
    assert client.get('/auth/profile').status_code == 401
    res = client.get('/auth/profile', headers={'Authorization': 'Bearer garbage'})
    assert res.status_code == 401
    assert res.get_json()['message'] == 'Invalid token'


def test_permission_gate(client, make_user, auth_headers, now):
    member = make_user()
    res = client.post('/elections', headers=auth_headers(member), json={
        'election_type': 'president',
        'title': 'Nope',
        'start_date': now.isoformat(),
        'end_date': (now + timedelta(days=1)).isoformat(),
    })
    assert res.status_code == 403
    body = res.get_json()
    assert body['message'] == 'Insufficient permissions'
    assert body['required'] == ['create_election']


def test_committee_head_cannot_create_committee(client, make_user, auth_headers):
    head = make_user(role='committee_head')
    res = client.post('/committees', headers=auth_headers(head), json={
        'name': 'X', 'description': 'Y', 'members': [head.id],
    })
    assert res.status_code == 403


def test_candidate_registration_uses_role_gate(client, make_user, make_election, auth_headers):
    election = make_election('president')
    manager = make_user(role='election_manager')
    member = make_user()

    body = {'user_id': member.id, 'election_id': election.id, 'candidate_type': 'president', 'name': 'M'}
    assert client.post('/candidates', json=body, headers=auth_headers(manager)).status_code == 403
    assert client.post('/candidates', json=body, headers=auth_headers(member)).status_code == 201


def test_board_election_over_http(client, admin, make_user, auth_headers, now):
    member1, member2 = make_user(), make_user()
    admin_h = auth_headers(admin)

    res = client.post('/committees', headers=admin_h, json={
        'name': 'Board C', 'description': 'Runs the board', 'members': [member1.id, member2.id],
    })
    assert res.status_code == 201
    committee = res.get_json()['committee']
    assert [m['id'] for m in committee['members']] == [member1.id, member2.id]

    res = client.post('/elections', headers=admin_h, json={
        'election_type': 'board',
        'title': 'Board 2026',
        'start_date': (now - timedelta(minutes=5)).isoformat() + 'Z',
        'end_date': (now + timedelta(days=1)).isoformat() + 'Z',
        'committee_id': committee['id'],
    })
    assert res.status_code == 201
    election = res.get_json()['election']
    assert election['status'] == 'active'

    res = client.post('/candidates', headers=auth_headers(member1), json={
        'user_id': member1.id,
        'election_id': election['id'],
        'candidate_type': 'board',
        'name': 'A',
        'committee_id': committee['id'],
    })
    assert res.status_code == 201
    candidate = res.get_json()['candidate']

    ballot = {'election_type': 'board', 'candidate_id': candidate['id'], 'board_choice': 'yes'}
    assert client.post('/votes', json=ballot, headers=auth_headers(member1)).status_code == 201
    res = client.post('/votes', json=ballot, headers=auth_headers(member1))
    assert res.status_code == 409
    ballot['board_choice'] = 'no'
    assert client.post('/votes', json=ballot, headers=auth_headers(member2)).status_code == 201

    res = client.get('/votes/results/board')
    assert res.status_code == 200
    row = res.get_json()['results'][0]
    assert (row['total_votes'], row['yes_votes'], row['no_votes']) == (2, 1, 1)
    assert (row['yes_percentage'], row['no_percentage']) == (50.0, 50.0)

    res = client.get('/votes/my-votes', headers=auth_headers(member2))
    assert [v['board_choice'] for v in res.get_json()['votes']] == ['no']

    res = client.delete(f"/committees/{committee['id']}/members", headers=admin_h,
                        json={'user_id': member1.id})
    assert res.status_code == 400
    assert res.get_json()['active_elections'][0]['election_id'] == election['id']


def test_draft_election_cannot_start_early(client, admin, auth_headers, now):
    res = client.post('/elections', headers=auth_headers(admin), json={
        'election_type': 'president',
        'title': 'Next year',
        'start_date': (now + timedelta(days=30)).isoformat(),
        'end_date': (now + timedelta(days=31)).isoformat(),
    })
    election = res.get_json()['election']
    assert election['status'] == 'draft'

    res = client.patch(f"/elections/{election['id']}/start", headers=auth_headers(admin))
    assert res.status_code == 400
    assert 'before its scheduled start date' in res.get_json()['message']


def test_unverified_user_cannot_vote(client, make_user, make_election, make_candidate, auth_headers):
    election = make_election('president')
    candidate = make_candidate(make_user(), election)
    pending = make_user(verified=False)

    res = client.post('/votes', headers=auth_headers(pending),
                      json={'election_type': 'president', 'candidate_id': candidate.id})
    assert res.status_code == 403


def test_public_listings(client, make_committee, make_election):
    committee = make_committee()
    make_election('president')

    assert client.get('/committees').get_json()['count'] == 1
    assert client.get(f'/committees/{committee.id}/members').get_json()['count'] == 1
    assert client.get('/elections/active').get_json()['count'] == 1
    assert client.get('/elections?status=active').get_json()['count'] == 1
    assert client.get('/committees/999').status_code == 404


def test_user_admin_routes(client, admin, make_user, auth_headers):
    admin_h = auth_headers(admin)
    res = client.post('/users', headers=admin_h, json={
        'email': 'manager@example.com', 'password': 'secret123', 'role': 'election_manager', 'is_verified': True,
    })
    assert res.status_code == 201
    user_id = res.get_json()['user']['id']

    res = client.patch(f'/users/{user_id}', headers=admin_h, json={'role': 'committee_head'})
    assert res.get_json()['user']['role'] == 'committee_head'

    assert client.delete(f'/users/{user_id}', headers=admin_h).status_code == 200
    assert client.get(f'/users/{user_id}', headers=admin_h).status_code == 404


def test_operation_log_records_mutations(client, admin, make_user, make_election, make_candidate, auth_headers):
    election = make_election('president')
    candidate = make_candidate(make_user(), election)
    voter = make_user()

    client.post('/auth/login', json={'email': admin.email, 'password': 'password123'})
    client.post('/votes', headers=auth_headers(voter),
                json={'election_type': 'president', 'candidate_id': candidate.id})

    logs = OperationLog.query.order_by(OperationLog.id).all()
    assert [log.status_code for log in logs] == [200, 201]
    assert 'password123' not in logs[0].action
    assert '***' in logs[0].action
    assert logs[1].user_type == 'member'
    assert logs[1].user_id == voter.id
    assert logs[1].action == 'Cast vote (Submit)'

    res = client.get('/admin/logs?user_type=member', headers=auth_headers(admin))
    assert res.get_json()['records_filtered'] == 1

    res = client.get('/admin/logs/export', headers=auth_headers(admin))
    assert res.status_code == 200
    assert res.mimetype == 'text/csv'
    assert 'Cast vote' in res.get_data(as_text=True)


def test_logs_require_permission(client, make_user, auth_headers):
    assert client.get('/admin/logs', headers=auth_headers(make_user())).status_code == 403


def test_vote_export(client, admin, make_user, make_election, make_candidate, auth_headers):
    election = make_election('president')
    candidate = make_candidate(make_user(), election)
    client.post('/votes', headers=auth_headers(make_user()),
                json={'election_type': 'president', 'candidate_id': candidate.id})

    res = client.get('/votes/export', headers=auth_headers(admin))
    assert res.status_code == 200
    assert res.data[:2] == b'PK'
    assert client.get('/votes/export', headers=auth_headers(make_user())).status_code == 403


def test_non_string_fields_are_rejected(client, admin, make_user, auth_headers, now):
    res = client.post('/elections', headers=auth_headers(admin), json={
        'election_type': 'president',
        'title': 123,
        'start_date': now.isoformat(),
        'end_date': (now + timedelta(days=1)).isoformat(),
    })
    assert res.status_code == 400
    assert res.get_json()['message'] == 'title must be a string'

    res = client.post('/auth/signup', json={'email': 5, 'password': 'secret123'})
    assert res.status_code == 400
    assert res.get_json()['message'] == 'email must be a string'

    res = client.post('/auth/login', json={'email': ['a@example.com'], 'password': 'secret123'})
    assert res.status_code == 400

    member = make_user()
    res = client.post('/committees', headers=auth_headers(admin), json={
        'name': {'x': 1}, 'description': 'Y', 'members': [member.id],
    })
    assert res.status_code == 400
    assert res.get_json()['message'] == 'name must be a string'


def test_fractional_id_over_http(client, make_user, make_election, make_candidate, auth_headers):
    election = make_election('president')
    candidate = make_candidate(make_user(), election)

    res = client.post('/votes', headers=auth_headers(make_user()),
                      json={'election_type': 'president', 'candidate_id': candidate.id + 0.9})
    assert res.status_code == 400
    assert OperationLog.query.filter_by(status_code=201).count() == 0
