from io import BytesIO

import pandas as pd
from sqlalchemy import case, func

from errors import NotFoundError
from models import db, Candidate, Election, Vote
from services.elections import check_election_type, get_election


def _percentage(part, whole):
    return round(part / whole * 100, 2) if whole else 0


def find_results_election(election_type, committee_id=None):
    """The active election of this type if any, else the latest-ending closed one."""
    q = Election.query.filter(
        Election.election_type == election_type,
        Election.status.in_(('active', 'closed')),
    )
    if committee_id is not None:
        q = q.filter(Election.committee_id == committee_id)
    return (
        q.order_by(case((Election.status == 'active', 0), else_=1), Election.end_date.desc(), Election.id.desc())
        .first()
    )


def tally(election):
    total_col = func.count(Vote.id)
    rows = (
        db.session.query(
            Candidate.id,
            Candidate.name,
            total_col.label('total_votes'),
            func.sum(case((Vote.board_choice == 'yes', 1), else_=0)).label('yes_votes'),
            func.sum(case((Vote.board_choice == 'no', 1), else_=0)).label('no_votes'),
        )
        .join(Vote, Vote.candidate_id == Candidate.id)
        .filter(Vote.election_id == election.id, Vote.election_type == election.election_type)
        .group_by(Candidate.id, Candidate.name)
        .order_by(total_col.desc(), Candidate.name, Candidate.id)
        .all()
    )
    total = sum(r.total_votes for r in rows)

    results = []
    for r in rows:
        entry = {
            'candidate_id': r.id,
            'candidate_name': r.name,
            'total_votes': r.total_votes,
        }
        if election.election_type == 'board':
            yes, no = int(r.yes_votes or 0), int(r.no_votes or 0)
            entry.update({
                'yes_votes': yes,
                'no_votes': no,
                'yes_percentage': _percentage(yes, r.total_votes),
                'no_percentage': _percentage(no, r.total_votes),
            })
        else:
            entry['percentage'] = _percentage(r.total_votes, total)
        results.append(entry)

    return {
        'election_type': election.election_type,
        'election': election.summary(),
        'total_votes': total,
        'results': results,
    }


def get_results(election_type, committee_id=None):
    check_election_type(election_type)
    election = find_results_election(election_type, committee_id)
    if election is None:
        raise NotFoundError("No election found for this type")
    return tally(election)


def get_election_results(election_id):
    return tally(get_election(election_id))


def export_results(election_type, committee_id=None):
    """Results of the current election of this type as an .xlsx workbook."""
    data = get_results(election_type, committee_id)
    if election_type == 'board':
        columns = ['Candidate', 'Total votes', 'Yes', 'No', 'Yes %', 'No %']
        rows = [[r['candidate_name'], r['total_votes'], r['yes_votes'], r['no_votes'],
                 r['yes_percentage'], r['no_percentage']] for r in data['results']]
    else:
        columns = ['Candidate', 'Votes', 'Percentage']
        rows = [[r['candidate_name'], r['total_votes'], r['percentage']] for r in data['results']]

    df = pd.DataFrame(rows, columns=columns)
    output = BytesIO()
    with pd.ExcelWriter(output, engine='openpyxl') as writer:
        df.to_excel(writer, index=False, sheet_name='Results')
    output.seek(0)
    return output, data['election']
