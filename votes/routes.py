from datetime import datetime

from flask import Blueprint, jsonify, request, send_file

from access import catalog
from access.decorators import authorize, login_required
from services import results as result_service
from services import votes as vote_service

votes_bp = Blueprint('votes', __name__, url_prefix='/votes')

XLSX_MIMETYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'


# ----------------------
# 🗳️ Ballot
# ----------------------
@votes_bp.route('', methods=['POST'])
@authorize(verified=True)
def cast_vote(auth):
    data = request.get_json(silent=True) or {}
    vote = vote_service.cast_vote(
        auth.user,
        data.get('election_type'),
        data.get('candidate_id'),
        board_choice=data.get('board_choice'),
    )
    return jsonify({'message': 'Vote cast successfully', 'vote': vote.to_dict()}), 201


@votes_bp.route('/my-votes', methods=['GET'])
@login_required
def my_votes(auth):
    votes = vote_service.list_member_votes(auth.user, election_type=request.args.get('election_type'))
    return jsonify({'votes': [v.to_dict() for v in votes], 'count': len(votes)})


# ----------------------
# 📊 Results
# ----------------------
@votes_bp.route('/results/<election_type>', methods=['GET'])
def results(election_type):
    return jsonify(result_service.get_results(
        election_type, committee_id=request.args.get('committee_id', type=int)
    ))


@votes_bp.route('/results/election/<int:election_id>', methods=['GET'])
def election_results(election_id):
    return jsonify(result_service.get_election_results(election_id))


@votes_bp.route('/results/<election_type>/export', methods=['GET'])
@authorize(permissions=(catalog.VIEW_REPORTS,))
def export_results(election_type, auth):
    output, election = result_service.export_results(
        election_type, committee_id=request.args.get('committee_id', type=int)
    )
    filename = f"{election_type}_results_{election['id']}.xlsx"
    return send_file(output, as_attachment=True, download_name=filename, mimetype=XLSX_MIMETYPE)


# ----------------------
# 🔍 Audit
# ----------------------
@votes_bp.route('', methods=['GET'])
@authorize(permissions=(catalog.VIEW_ALL_VOTES,))
def list_votes(auth):
    votes = vote_service.list_votes(
        election_type=request.args.get('election_type'),
        election_id=request.args.get('election_id', type=int),
        candidate_id=request.args.get('candidate_id', type=int),
    )
    return jsonify({'votes': [v.to_dict() for v in votes], 'count': len(votes)})


@votes_bp.route('/export', methods=['GET'])
@authorize(permissions=(catalog.VIEW_ALL_VOTES,))
def export_votes(auth):
    output = vote_service.export_votes(election_type=request.args.get('election_type'))
    filename = f"votes_{datetime.now().strftime('%Y%m%d_%H%M%S')}.xlsx"
    return send_file(output, as_attachment=True, download_name=filename, mimetype=XLSX_MIMETYPE)
