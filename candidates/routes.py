from flask import Blueprint, jsonify, request

from access import catalog
from access.decorators import authorize
from services import candidates as candidate_service

candidates_bp = Blueprint('candidates', __name__, url_prefix='/candidates')


@candidates_bp.route('', methods=['GET'])
def list_candidates():
    candidates = candidate_service.list_candidates(
        election_id=request.args.get('election_id', type=int),
        candidate_type=request.args.get('candidate_type'),
        status=request.args.get('status'),
        committee_id=request.args.get('committee_id', type=int),
    )
    return jsonify({'candidates': [c.to_dict() for c in candidates], 'count': len(candidates)})


@candidates_bp.route('/<int:candidate_id>', methods=['GET'])
def get_candidate(candidate_id):
    return jsonify({'candidate': candidate_service.get_candidate(candidate_id).to_dict()})


@candidates_bp.route('', methods=['POST'])
@authorize(roles=catalog.CANDIDATE_REGISTRATION_ROLES)
def create_candidate(auth):
    data = request.get_json(silent=True) or {}
    candidate = candidate_service.create_candidate(
        data.get('user_id'),
        data.get('election_id'),
        data.get('candidate_type'),
        data.get('name'),
        status=data.get('status'),
        committee_id=data.get('committee_id'),
    )
    return jsonify({'message': 'Candidate created successfully', 'candidate': candidate.to_dict()}), 201


@candidates_bp.route('/<int:candidate_id>', methods=['PUT', 'PATCH'])
@authorize(permissions=(catalog.EDIT_CANDIDATE,))
def update_candidate(candidate_id, auth):
    data = request.get_json(silent=True) or {}
    candidate = candidate_service.update_candidate(
        candidate_id,
        user_id=data.get('user_id'),
        candidate_type=data.get('candidate_type'),
        name=data.get('name'),
        status=data.get('status'),
    )
    return jsonify({'message': 'Candidate updated successfully', 'candidate': candidate.to_dict()})


@candidates_bp.route('/<int:candidate_id>', methods=['DELETE'])
@authorize(permissions=(catalog.DELETE_CANDIDATE,))
def delete_candidate(candidate_id, auth):
    candidate_service.delete_candidate(candidate_id)
    return jsonify({'message': 'Candidate deleted successfully'})
