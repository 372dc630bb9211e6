from flask import Blueprint, jsonify, request

from access import catalog
from access.decorators import authorize
from services import elections as election_service

elections_bp = Blueprint('elections', __name__, url_prefix='/elections')


@elections_bp.route('', methods=['GET'])
def list_elections():
    elections = election_service.list_elections(
        status=request.args.get('status'),
        election_type=request.args.get('election_type'),
        committee_id=request.args.get('committee_id', type=int),
    )
    return jsonify({'elections': [e.to_dict() for e in elections], 'count': len(elections)})


@elections_bp.route('/active', methods=['GET'])
def list_active_elections():
    elections = election_service.list_active_elections()
    return jsonify({'elections': [e.to_dict() for e in elections], 'count': len(elections)})


@elections_bp.route('/<int:election_id>', methods=['GET'])
def get_election(election_id):
    election = election_service.get_election(election_id)
    data = election.to_dict()
    data['candidates'] = [c.to_dict() for c in election.candidates]
    return jsonify({'election': data})


@elections_bp.route('', methods=['POST'])
@authorize(permissions=(catalog.CREATE_ELECTION,))
def create_election(auth):
    data = request.get_json(silent=True) or {}
    election = election_service.create_election(
        data.get('election_type'),
        data.get('title'),
        data.get('start_date'),
        data.get('end_date'),
        created_by=auth.user,
        description=data.get('description'),
        committee_id=data.get('committee_id'),
    )
    return jsonify({'message': 'Election created successfully', 'election': election.to_dict()}), 201


@elections_bp.route('/<int:election_id>', methods=['PATCH'])
@authorize(permissions=(catalog.EDIT_ELECTION,))
def update_election(election_id, auth):
    data = request.get_json(silent=True) or {}
    election = election_service.update_election(
        election_id,
        title=data.get('title'),
        description=data.get('description'),
        start_date=data.get('start_date'),
        end_date=data.get('end_date'),
        status=data.get('status'),
    )
    return jsonify({'message': 'Election updated successfully', 'election': election.to_dict()})


@elections_bp.route('/<int:election_id>', methods=['DELETE'])
@authorize(permissions=(catalog.DELETE_ELECTION,))
def delete_election(election_id, auth):
    election_service.delete_election(election_id)
    return jsonify({'message': 'Election deleted successfully'})


@elections_bp.route('/<int:election_id>/start', methods=['PATCH'])
@authorize(permissions=(catalog.START_ELECTION,))
def start_election(election_id, auth):
    election = election_service.start_election(election_id)
    return jsonify({'message': 'Election started successfully', 'election': election.to_dict()})


@elections_bp.route('/<int:election_id>/close', methods=['PATCH'])
@authorize(permissions=(catalog.CLOSE_ELECTION,))
def close_election(election_id, auth):
    election = election_service.close_election(election_id)
    return jsonify({'message': 'Election closed successfully', 'election': election.to_dict()})
