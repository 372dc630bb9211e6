import csv
from datetime import datetime

from flask import Blueprint, Response, jsonify, request, stream_with_context
from sqlalchemy import or_

from access import catalog
from access.decorators import authorize
from errors import ValidationError
from models import OperationLog

admin_logs_bp = Blueprint('admin_logs', __name__)

COLUMNS = ['timestamp', 'user_type', 'user_id', 'action', 'status_code', 'ip_address']


def _parse_day(value, field, end_of_day=False):
    try:
        dt = datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        raise ValidationError(f"{field} must be YYYY-MM-DD")
    if end_of_day:
        dt = dt.replace(hour=23, minute=59, second=59)
    return dt


def _filtered_query(args):
    user_type = args.get('user_type', '').strip()
    keyword = args.get('keyword', '').strip()
    date_from = args.get('date_from', '').strip()
    date_to = args.get('date_to', '').strip()

    q = OperationLog.query
    if user_type:
        q = q.filter(OperationLog.user_type == user_type)
    if keyword:
        like = f"%{keyword}%"
        q = q.filter(or_(
            OperationLog.action.ilike(like),
            OperationLog.ip_address.ilike(like)
        ))
    if date_from:
        q = q.filter(OperationLog.timestamp >= _parse_day(date_from, 'date_from'))
    if date_to:
        q = q.filter(OperationLog.timestamp <= _parse_day(date_to, 'date_to', end_of_day=True))
    return q


# ---------------------------
# Paged listing
# ---------------------------
@admin_logs_bp.route('/logs')
@authorize(permissions=(catalog.VIEW_SYSTEM_LOGS,))
def list_logs(auth):
    start = request.args.get('start', 0, type=int)
    length = min(request.args.get('length', 25, type=int), 500)
    order_column = request.args.get('order', 'timestamp')
    if order_column not in COLUMNS:
        order_column = 'timestamp'
    order_dir = request.args.get('dir', 'desc')

    q = _filtered_query(request.args)
    total_records = OperationLog.query.count()
    filtered_records = q.count()

    col_attr = getattr(OperationLog, order_column)
    q = q.order_by(col_attr.desc() if order_dir == 'desc' else col_attr.asc(), OperationLog.id.desc())
    logs = q.offset(start).limit(length).all()

    return jsonify({
        'records_total': total_records,
        'records_filtered': filtered_records,
        'logs': [log.to_dict() for log in logs],
    })


# ---------------------------
# CSV export (full, filtered)
# ---------------------------
@admin_logs_bp.route('/logs/export')
@authorize(permissions=(catalog.VIEW_SYSTEM_LOGS,))
def export_logs_csv(auth):
    q = _filtered_query(request.args).order_by(OperationLog.timestamp.desc())

    class Echo:
        def write(self, value):
            return value

    def generate():
        writer = csv.writer(Echo())
        yield writer.writerow(["Time (UTC)", "User type", "User ID", "Action", "Status", "IP"])
        for log in q:
            yield writer.writerow([
                log.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
                log.user_type,
                log.user_id,
                log.action,
                log.status_code,
                log.ip_address or ""
            ])

    return Response(stream_with_context(generate()),
                    mimetype='text/csv',
                    headers={"Content-Disposition": "attachment; filename=operation_logs.csv"})
