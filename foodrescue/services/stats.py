import calendar
from datetime import datetime, timedelta

from sqlalchemy import func

from foodrescue.errors import ValidationError
from foodrescue.extensions import db
from foodrescue.models.donation_model import Donation
from foodrescue.models.user_model import User

# Multipliers to kilograms; servings and items are estimated at 0.3 kg each
KG_PER_UNIT = {
    'kg': 1.0,
    'g': 0.001,
    'lb': 0.453592,
    'oz': 0.0283495,
    'servings': 0.3,
    'items': 0.3,
}


def quantity_in_kg(quantity, unit):
    return quantity * KG_PER_UNIT.get((unit or '').strip().lower(), 1.0)


def one_month_before(moment):
    year, month = (moment.year, moment.month - 1) if moment.month > 1 else (moment.year - 1, 12)
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def food_saved_kg(donations):
    return round(sum(quantity_in_kg(d.quantity, d.unit) for d in donations), 2)


def dashboard(now=None):
    now = now or datetime.now()
    one_week_ago = now - timedelta(days=7)
    one_month_ago = one_month_before(now)

    completed = Donation.query.filter_by(status='completed').all()
    return {
        'totalUsers': User.query.count(),
        'totalDonors': User.query.filter_by(role='donor').count(),
        'totalVolunteers': User.query.filter_by(role='volunteer').count(),
        'totalDonations': Donation.query.count(),
        'activeDonations': Donation.query.filter_by(status='available').count(),
        'completedDonations': len(completed),
        'totalFoodSaved': food_saved_kg(completed),
        'weeklyDonations': Donation.query.filter(Donation.created_at >= one_week_ago).count(),
        'monthlyDonations': Donation.query.filter(Donation.created_at >= one_month_ago).count(),
    }


def weekly_summary(now=None):
    now = now or datetime.now()
    one_week_ago = now - timedelta(days=7)
    completed = Donation.query.filter(
        Donation.status == 'completed',
        Donation.completed_at >= one_week_ago,
    ).all()
    return {
        'newDonations': Donation.query.filter(Donation.created_at >= one_week_ago).count(),
        'completedDonations': len(completed),
        'totalFoodSaved': food_saved_kg(completed),
    }


def _grouped(column, created_at, start, end):
    rows = (db.session.query(column, func.count())
            .filter(created_at >= start, created_at <= end)
            .group_by(column)
            .all())
    return {key: count for key, count in rows}


def report(report_type, start=None, end=None):
    start = start or datetime(1970, 1, 1)
    end = end or datetime.now()
    if start > end:
        raise ValidationError('startDate must be before endDate')

    if report_type == 'donations':
        data = {
            'totalDonations': Donation.query.filter(Donation.created_at.between(start, end)).count(),
            'donationsByStatus': _grouped(Donation.status, Donation.created_at, start, end),
            'donationsByType': _grouped(Donation.food_type, Donation.created_at, start, end),
        }
    elif report_type == 'users':
        data = {
            'totalUsers': User.query.filter(User.created_at.between(start, end)).count(),
            'usersByRole': _grouped(User.role, User.created_at, start, end),
        }
    else:
        raise ValidationError('Invalid report type')

    return {
        'reportType': report_type,
        'timeframe': {'start': start.isoformat(), 'end': end.isoformat()},
        'data': data,
    }
