"""
Admin dashboard routes
"""
from flask import render_template, Blueprint, jsonify
from routes.admin.auth import admin_required
from models.wallet_transaction import serialize_row, utcnow
from utils.change_feed import get_transaction_cache
from utils.wallet_metrics import daily_cash_in, summarize, top_referrers, user_wallet_summary

admin_dashboard_bp = Blueprint('admin_dashboard', __name__, url_prefix='/admin')


def _analytics(rows, now):
    summary = summarize(rows, now)
    return {
        'summary': summary,
        'daily_cash_in': daily_cash_in(rows, now.date()),
        'top_referrers': top_referrers(rows),
    }


@admin_dashboard_bp.route('/')
@admin_dashboard_bp.route('/dashboard')
@admin_required
def dashboard():
    """Summary cards, analytics charts and latest requests"""
    now = utcnow()
    rows = get_transaction_cache().rows()
    data = _analytics(rows, now)
    return render_template('admin/dashboard.html',
                           summary=data['summary'],
                           daily_cash_in=data['daily_cash_in'],
                           top_referrers=data['top_referrers'],
                           recent_transactions=rows[:10])


@admin_dashboard_bp.route('/api/analytics')
@admin_required
def api_analytics():
    data = _analytics(get_transaction_cache().rows(), utcnow())
    return jsonify({'success': True, **data})


@admin_dashboard_bp.route('/api/users/<user_id>/wallet')
@admin_required
def api_user_wallet(user_id):
    """Approved balance and last top-up for one user"""
    wallet = user_wallet_summary(get_transaction_cache().rows(), user_id)
    last_top_up = wallet['last_top_up']
    wallet['last_top_up'] = last_top_up.isoformat() if last_top_up else None
    return jsonify({'success': True, 'wallet': wallet})


@admin_dashboard_bp.route('/api/transactions/refresh', methods=['POST'])
@admin_required
def api_refresh():
    """Reload the cached table from the database (Refresh Data button)"""
    rows = get_transaction_cache().refresh()
    return jsonify({'success': True, 'transactions': [serialize_row(r) for r in rows]})
