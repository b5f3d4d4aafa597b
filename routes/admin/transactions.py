"""
Admin wallet transaction routes: table, status changes, new cash-in, CSV export, JSON API
"""
from flask import render_template, Blueprint, request, redirect, url_for, flash, make_response, jsonify, current_app
from routes.admin.auth import admin_required
from models.wallet_transaction import METHODS, STATUSES, STATUS_REJECTED, serialize_row, utcnow
from utils.change_feed import get_transaction_cache
from utils.status_engine import get_status_engine
from utils.wallet_errors import (
    EligibilityExpired,
    InvalidStatus,
    InvalidTransaction,
    StoreUpdateFailed,
    StoreWriteFailed,
    TransactionNotFound,
)
from utils.wallet_metrics import csv_rows, filter_transactions, parse_amount_to_cents, sort_transactions
import csv
import io

transactions_bp = Blueprint('admin_transactions', __name__, url_prefix='/admin')


def _filter_args():
    return {
        'search': request.args.get('search', '').strip(),
        'start_date': request.args.get('start_date', '').strip(),
        'end_date': request.args.get('end_date', '').strip(),
        'status': request.args.get('status', '').strip(),
    }


def _filtered_rows():
    """Cached rows with the request's filters and sort applied"""
    filters = _filter_args()
    sort_by = request.args.get('sort_by', 'date')
    rows = filter_transactions(get_transaction_cache().rows(), **filters)
    return sort_transactions(rows, sort_by), filters, sort_by


@transactions_bp.route('/transactions')
@admin_required
def transactions():
    """Transaction table"""
    rows, filters, sort_by = _filtered_rows()
    engine = get_status_engine()
    now = utcnow()
    for row in rows:
        row['can_reject'] = engine.can_reject(row, now=now)
        row['reject_expired'] = not engine.within_reject_window(row, now=now)

    return render_template('admin/transactions.html',
                           transactions=rows,
                           methods=METHODS,
                           statuses=STATUSES,
                           search_query=filters['search'],
                           filter_start_date=filters['start_date'],
                           filter_end_date=filters['end_date'],
                           filter_status=filters['status'],
                           sort_by=sort_by)


@transactions_bp.route('/transactions/export/csv')
@admin_required
def export_csv():
    """Export transactions to CSV (same filters as main view)"""
    rows, _, _ = _filtered_rows()

    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerows(csv_rows(rows))

    response = make_response(output.getvalue())
    response.headers['Content-Type'] = 'text/csv; charset=utf-8'
    response.headers['Content-Disposition'] = (
        f'attachment; filename=wallet-transactions-{utcnow().strftime("%Y-%m-%d")}.csv'
    )
    return response


@transactions_bp.route('/transactions/new', methods=['POST'])
@admin_required
def create_transaction():
    """Create a pending cash-in request from the admin form"""
    user_id = request.form.get('user_id', '').strip()
    method = request.form.get('method', '').strip()
    referral_code = request.form.get('referral_code', '').strip()

    try:
        amount_cents = parse_amount_to_cents(request.form.get('amount', ''))
        created = get_status_engine().create_pending_transaction(user_id, amount_cents, method, referral_code or None)
    except (ValueError, InvalidTransaction) as e:
        flash(str(e), 'error')
        return redirect(url_for('admin_transactions.transactions'))
    except StoreWriteFailed as e:
        current_app.logger.error(f"Failed to create cash-in request: {e}", exc_info=True)
        flash('Failed to create cash-in request. Please try again.', 'error')
        return redirect(url_for('admin_transactions.transactions'))

    from utils.notifications import notify_new_cash_in
    from utils.mail import send_new_cash_in_email
    notify_new_cash_in(created)
    send_new_cash_in_email(created)

    flash(f'Cash-in request #{created.id} created.', 'success')
    return redirect(url_for('admin_transactions.transactions'))


@transactions_bp.route('/transactions/<int:transaction_id>/status', methods=['POST'])
@admin_required
def update_status(transaction_id):
    """Approve / reject / reset to pending"""
    wants_json = request.is_json
    if wants_json:
        data = request.get_json(silent=True)
    else:
        data = request.form
    raw_status = data.get('status') if isinstance(data, dict) else None

    def respond(success, message, code=200, transaction=None):
        if wants_json:
            body = {'success': success, 'message': message}
            if transaction is not None:
                body['transaction'] = transaction.to_dict()
            return jsonify(body), code
        flash(message, 'success' if success else 'error')
        return redirect(request.referrer or url_for('admin_transactions.transactions'))

    if not isinstance(raw_status, str):
        return respond(False, f'Invalid status: {raw_status!r}', 400)
    target_status = raw_status.strip().lower()

    cache = get_transaction_cache()
    masked = target_status == STATUS_REJECTED
    if masked:
        # Readers of the cache never see the intermediate pending of a fallback reject
        cache.set_override(transaction_id, status=STATUS_REJECTED)
    try:
        updated = get_status_engine().request_status_change(transaction_id, target_status)
    except InvalidStatus as e:
        return respond(False, str(e), 400)
    except TransactionNotFound as e:
        return respond(False, str(e), 404)
    except EligibilityExpired as e:
        return respond(False, str(e), 403)
    except StoreUpdateFailed as e:
        current_app.logger.error(f"Status update for transaction #{transaction_id} failed: {e}", exc_info=True)
        from utils.notifications import notify_transition_failed
        notify_transition_failed(transaction_id, target_status, error_message=str(e.cause or e))
        return respond(False, f'Error updating transaction status: {e.cause or e}', 500)
    finally:
        if masked:
            cache.clear_override(transaction_id)

    return respond(True, f'Transaction #{transaction_id} is now {updated.status}.', transaction=updated)


@transactions_bp.route('/api/transactions')
@admin_required
def api_transactions():
    """JSON view of the filtered, sorted table"""
    rows, _, _ = _filtered_rows()
    engine = get_status_engine()
    now = utcnow()
    payload = []
    for row in rows:
        item = serialize_row(row)
        item['can_reject'] = engine.can_reject(row, now=now)
        payload.append(item)
    return jsonify({'success': True, 'transactions': payload})
