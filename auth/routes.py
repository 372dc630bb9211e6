from flask import Blueprint, jsonify, request

from access import catalog
from access.decorators import authorize, login_required
from services import users as user_service

auth_bp = Blueprint('auth', __name__, url_prefix='/auth')


# ----------------------
# 📝 Sign up / log in
# ----------------------
@auth_bp.route('/signup', methods=['POST'])
def signup():
    data = request.get_json(silent=True) or {}
    user = user_service.register(data.get('email'), data.get('password'))
    return jsonify({
        'message': 'User registered successfully. Please wait for admin verification.',
        'user': user.to_dict(),
    }), 201


@auth_bp.route('/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or {}
    user, tokens = user_service.authenticate(data.get('email'), data.get('password'))
    return jsonify({'message': 'Login successful', 'user': user.to_dict(), **tokens})


@auth_bp.route('/refresh', methods=['POST'])
def refresh():
    data = request.get_json(silent=True) or {}
    user, tokens = user_service.refresh(data.get('refresh_token'))
    return jsonify({'user': user.to_dict(), **tokens})


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout(auth):
    # tokens are stateless; the client drops them
    return jsonify({'message': 'Logged out successfully'})


# ----------------------
# 👤 Current account
# ----------------------
@auth_bp.route('/profile', methods=['GET'])
@login_required
def profile(auth):
    data = auth.user.to_dict()
    data['committee'] = auth.user.committee.to_dict(include_members=False) if auth.user.committee else None
    return jsonify({'user': data})


@auth_bp.route('/permissions', methods=['GET'])
@login_required
def permissions(auth):
    return jsonify(auth.to_dict())


# ----------------------
# ✅ Account verification
# ----------------------
@auth_bp.route('/unverified', methods=['GET'])
@authorize(permissions=(catalog.VIEW_UNVERIFIED_USERS,))
def unverified_users(auth):
    users = user_service.list_unverified_users()
    return jsonify({'users': [u.to_dict() for u in users], 'count': len(users)})


@auth_bp.route('/verify/<int:user_id>', methods=['PATCH', 'PUT'])
@authorize(permissions=(catalog.VERIFY_USER,))
def verify_user(user_id, auth):
    data = request.get_json(silent=True) or {}
    user = user_service.verify_user(user_id, data.get('is_verified'))
    state = 'verified' if user.is_verified else 'unverified'
    return jsonify({'message': f'User {state} successfully', 'user': user.to_dict()})
