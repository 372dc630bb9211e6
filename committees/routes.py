from flask import Blueprint, jsonify, request

from access import catalog
from access.decorators import authorize, login_required
from errors import ValidationError
from services import committees as committee_service
from utils.helpers import coerce_id, parse_bool

committees_bp = Blueprint('committees', __name__, url_prefix='/committees')


def _user_id_from_body():
    data = request.get_json(silent=True) or {}
    if data.get('user_id') is None:
        raise ValidationError("user_id is required")
    return coerce_id(data['user_id'], 'user_id')


# ----------------------
# 📋 Read
# ----------------------
@committees_bp.route('', methods=['GET'])
def list_committees():
    is_active = request.args.get('is_active')
    committees = committee_service.list_committees(
        is_active=parse_bool(is_active, 'is_active') if is_active is not None else None
    )
    return jsonify({'committees': [c.to_dict() for c in committees], 'count': len(committees)})


@committees_bp.route('/<int:committee_id>', methods=['GET'])
def get_committee(committee_id):
    return jsonify({'committee': committee_service.get_committee(committee_id).to_dict()})


@committees_bp.route('/<int:committee_id>/members', methods=['GET'])
def list_members(committee_id):
    members = committee_service.list_members(committee_id)
    return jsonify({'members': [m.to_dict() for m in members], 'count': len(members)})


@committees_bp.route('/user/my-committees', methods=['GET'])
@login_required
def my_committees(auth):
    committees = committee_service.list_user_committees(auth.user)
    return jsonify({'committees': [c.to_dict() for c in committees], 'count': len(committees)})


# ----------------------
# ✏️ Write
# ----------------------
@committees_bp.route('', methods=['POST'])
@authorize(permissions=(catalog.CREATE_COMMITTEE,))
def create_committee(auth):
    data = request.get_json(silent=True) or {}
    committee = committee_service.create_committee(
        data.get('name'),
        data.get('description'),
        data.get('members'),
        created_by=auth.user,
    )
    return jsonify({'message': 'Committee created successfully', 'committee': committee.to_dict()}), 201


@committees_bp.route('/<int:committee_id>', methods=['PUT', 'PATCH'])
@authorize(permissions=(catalog.EDIT_COMMITTEE,))
def update_committee(committee_id, auth):
    data = request.get_json(silent=True) or {}
    committee = committee_service.update_committee(
        committee_id,
        name=data.get('name'),
        description=data.get('description'),
        is_active=data.get('is_active'),
    )
    return jsonify({'message': 'Committee updated successfully', 'committee': committee.to_dict()})


@committees_bp.route('/<int:committee_id>/deactivate', methods=['PATCH'])
@authorize(permissions=(catalog.EDIT_COMMITTEE,))
def deactivate_committee(committee_id, auth):
    committee = committee_service.deactivate_committee(committee_id)
    return jsonify({'message': 'Committee deactivated successfully', 'committee': committee.to_dict()})


@committees_bp.route('/<int:committee_id>', methods=['DELETE'])
@authorize(permissions=(catalog.DELETE_COMMITTEE,))
def delete_committee(committee_id, auth):
    committee_service.delete_committee(committee_id)
    return jsonify({'message': 'Committee deleted successfully'})


# ----------------------
# 👥 Membership
# ----------------------
@committees_bp.route('/<int:committee_id>/members', methods=['POST'])
@authorize(permissions=(catalog.MANAGE_COMMITTEE_MEMBERS,))
def add_member(committee_id, auth):
    committee = committee_service.add_member(committee_id, _user_id_from_body())
    return jsonify({'message': 'Member added successfully', 'committee': committee.to_dict()})


@committees_bp.route('/<int:committee_id>/members', methods=['DELETE'])
@authorize(permissions=(catalog.MANAGE_COMMITTEE_MEMBERS,))
def remove_member(committee_id, auth):
    committee = committee_service.remove_member(committee_id, _user_id_from_body())
    return jsonify({'message': 'Member removed successfully', 'committee': committee.to_dict()})
