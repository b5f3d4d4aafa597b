"""
Dashboard figures, table filtering/sorting, analytics series and CSV rows.
All helpers take row snapshots (dicts with datetime created_at) so they work
the same on cached rows and on fresh store reads.
"""
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from models.wallet_transaction import STATUS_APPROVED, STATUS_PENDING, STATUSES

CSV_HEADERS = ['User', 'Amount (₱)', 'Method', 'Status', 'Referral Code', 'Date']
SORT_OPTIONS = ('date', 'amount', 'user')
CENTS = Decimal('100')


def _approved(rows):
    return [r for r in rows if r.get('status') == STATUS_APPROVED]


def cents_to_pesos(amount_cents):
    return (amount_cents or 0) / 100


def parse_amount_to_cents(raw):
    """'150.255' -> 15026. Raises ValueError for blanks, junk and amounts <= 0."""
    try:
        value = Decimal(str(raw).strip())
    except (InvalidOperation, ValueError):
        raise ValueError('Please enter a valid amount')
    if not value.is_finite() or value <= 0:
        raise ValueError('Please enter a valid amount')
    cents = int((value * CENTS).quantize(Decimal('1'), rounding=ROUND_HALF_UP))
    if cents <= 0:
        raise ValueError('Please enter a valid amount')
    return cents


def top_referrer(rows):
    """Referral code with the largest approved total, or None"""
    totals = {}
    for row in _approved(rows):
        code = row.get('referral_code')
        if not code:
            continue
        totals[code] = totals.get(code, 0) + (row.get('amount_cents') or 0)
    if not totals:
        return None
    code = max(totals, key=totals.get)
    return {'referral_code': code, 'total_amount': totals[code]}


def summarize(rows, now):
    """Summary cards: approved balance, approved this month, pending count, top referrer"""
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    approved = _approved(rows)
    return {
        'total_balance': sum(r.get('amount_cents') or 0 for r in approved),
        'approved_this_month': sum(
            r.get('amount_cents') or 0 for r in approved
            if r.get('created_at') and r['created_at'] >= month_start
        ),
        'pending_requests': sum(1 for r in rows if r.get('status') == STATUS_PENDING),
        'top_referrer': top_referrer(rows),
    }


def _parse_date(value):
    if not value:
        return None
    try:
        return datetime.strptime(value.strip(), '%Y-%m-%d').date()
    except ValueError:
        return None


def filter_transactions(rows, search='', start_date='', end_date='', status=''):
    """Search over user/method/referral code, inclusive date bounds, exact status"""
    filtered = list(rows)

    term = (search or '').strip().lower()
    if term:
        filtered = [
            r for r in filtered
            if term in (r.get('user_id') or '').lower()
            or term in (r.get('method') or '').lower()
            or term in (r.get('referral_code') or '').lower()
        ]

    # Timezone-safe: compare date part of created_at (UTC) with selected dates
    start = _parse_date(start_date)
    if start:
        filtered = [r for r in filtered if r.get('created_at') and r['created_at'].date() >= start]

    end = _parse_date(end_date)
    if end:
        filtered = [r for r in filtered if r.get('created_at') and r['created_at'].date() <= end]

    if status in STATUSES:
        filtered = [r for r in filtered if r.get('status') == status]

    return filtered


def sort_transactions(rows, sort_by='date'):
    if sort_by == 'amount':
        return sorted(rows, key=lambda r: r.get('amount_cents') or 0, reverse=True)
    if sort_by == 'user':
        return sorted(rows, key=lambda r: ((r.get('user_id') or '').lower(), r.get('id') or 0))
    return sorted(rows, key=lambda r: (r.get('created_at') or datetime.min, r.get('id') or 0), reverse=True)


def daily_cash_in(rows, today, days=7):
    """Approved pesos per day for the last `days` days, oldest first"""
    start = today - timedelta(days=days - 1)
    buckets = [{'day': start + timedelta(days=i), 'amount': 0} for i in range(days)]
    index = {b['day']: b for b in buckets}
    for row in _approved(rows):
        created_at = row.get('created_at')
        if not created_at:
            continue
        bucket = index.get(created_at.date())
        if bucket:
            bucket['amount'] += cents_to_pesos(row.get('amount_cents'))
    return [{'date': b['day'].strftime('%b %d'), 'amount': b['amount']} for b in buckets]


def top_referrers(rows, limit=5):
    totals = {}
    for row in _approved(rows):
        code = row.get('referral_code')
        if code:
            totals[code] = totals.get(code, 0) + (row.get('amount_cents') or 0)
    ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)[:limit]
    return [{'code': code, 'amount': cents_to_pesos(amount)} for code, amount in ranked]


def user_wallet_summary(rows, user_id):
    """Approved balance and latest approved top-up for one user"""
    approved = [r for r in _approved(rows) if r.get('user_id') == user_id]
    latest = max((r['created_at'] for r in approved if r.get('created_at')), default=None)
    return {
        'user_id': user_id,
        'balance': sum(r.get('amount_cents') or 0 for r in approved),
        'last_top_up': latest,
    }


def csv_rows(rows):
    """Header plus one list per row, amounts in pesos"""
    output = [list(CSV_HEADERS)]
    for row in rows:
        created_at = row.get('created_at')
        output.append([
            row.get('user_id'),
            f"{cents_to_pesos(row.get('amount_cents')):.2f}",
            row.get('method'),
            row.get('status'),
            row.get('referral_code') or '',
            created_at.strftime('%Y-%m-%d %H:%M:%S') if created_at else '',
        ])
    return output
