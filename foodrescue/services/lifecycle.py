"""Donation lifecycle engine.

    available -> claimed -> completed
        |           |
        +-----------+-----> expired

Status changes only go through ``_conditional_update``: a single UPDATE
matching the donation id and its expected current status. When two callers
race for the same donation exactly one UPDATE matches a row; the other gets
``InvalidState`` and the record is left as the winner wrote it.
"""
import logging
from datetime import datetime

from sqlalchemy import delete as sql_delete
from sqlalchemy import update as sql_update

from foodrescue.errors import Forbidden, InvalidState, NotFound, ValidationError
from foodrescue.extensions import db
from foodrescue.models.donation_model import FOOD_TYPES, Donation
from foodrescue.models.pickup_model import Pickup
from foodrescue.services import notifications

logger = logging.getLogger(__name__)

# target status -> statuses it may be entered from
TRANSITIONS = {
    'claimed': ('available',),
    'completed': ('claimed',),
    'expired': ('available', 'claimed'),
}

NO_LONGER_AVAILABLE = 'This donation is no longer available'


def _require_active(user):
    if user is None:
        raise Forbidden('Authentication required')
    if not user.is_active:
        raise Forbidden('Your account is inactive')


def get_donation(donation_id):
    donation = db.session.get(Donation, donation_id)
    if donation is None:
        raise NotFound('Donation not found')
    return donation


def _conditional_update(donation_id, expected, message, criteria=(), **values):
    """UPDATE the donation only if its status is still one of ``expected``.

    Returns the refreshed donation. Does not commit, so the caller can add the
    side effects of the change to the same transaction.
    """
    stmt = (
        sql_update(Donation)
        .where(Donation.id == donation_id, Donation.status.in_(expected), *criteria)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if result.rowcount != 1:
        db.session.rollback()
        if db.session.get(Donation, donation_id) is None:
            raise NotFound('Donation not found')
        raise InvalidState(message)
    return db.session.get(Donation, donation_id, populate_existing=True)


def _transition(donation, target, expected, message, now, criteria=(), **values):
    allowed = TRANSITIONS[target]
    expected = tuple(status for status in expected if status in allowed)
    if donation.status not in expected:
        raise InvalidState(message)
    values.update(status=target, updated_at=now)
    donation = _conditional_update(donation.id, expected, message, criteria, **values)
    logger.info('Donation %s moved to %s', donation.id, target)
    return donation


def _open_pickup(donation):
    return (Pickup.query
            .filter(Pickup.donation_id == donation.id, Pickup.status.in_(('scheduled', 'in-progress')))
            .order_by(Pickup.created_at.desc())
            .first())


def _check_fields(data):
    if data.quantity is not None and data.quantity <= 0:
        raise ValidationError('Quantity must be greater than zero')
    if data.food_type is not None and data.food_type not in FOOD_TYPES:
        raise ValidationError(f'foodType must be one of: {", ".join(FOOD_TYPES)}')


def _pickup_details(donation):
    details = f'{donation.street}, {donation.city}, {donation.state} {donation.zip_code}'
    if donation.pickup_instructions:
        details += f'. {donation.pickup_instructions}'
    return details


def create(donor, data, now=None):
    """Persist a new ``available`` donation from a DonationInput."""
    _require_active(donor)
    if donor.role not in ('donor', 'admin'):
        raise Forbidden('Only donors can create donations')

    missing = data.missing()
    if missing:
        raise ValidationError(f'Missing required fields: {", ".join(missing)}')
    _check_fields(data)
    now = now or datetime.now()
    if data.expiration_date <= now:
        raise ValidationError('Expiration date must be in the future')

    donation = Donation(donor_id=donor.id, status='available', created_at=now, updated_at=now,
                        **data.to_fields())
    db.session.add(donation)
    db.session.commit()
    logger.info('Donation %s created by user %s', donation.id, donor.id)
    return donation


def claim(donation_id, volunteer, pickup_time=None, now=None):
    """Reserve an available donation for ``volunteer``.

    Returns ``(donation, pickup)``.
    """
    _require_active(volunteer)
    if volunteer.role not in ('volunteer', 'admin'):
        raise Forbidden('Only volunteers can claim donations')

    now = now or datetime.now()
    donation = get_donation(donation_id)
    if donation.status == 'available' and donation.is_expired(now):
        raise InvalidState('This donation has expired and can no longer be claimed')

    donation = _transition(
        donation, 'claimed', ('available',), NO_LONGER_AVAILABLE, now,
        criteria=(Donation.expiration_date >= now,),
        claimed_by=volunteer.id, claimed_at=now, pickup_time=pickup_time,
    )

    pickup = Pickup(donation_id=donation.id, volunteer_id=volunteer.id,
                    scheduled_time=pickup_time or now, status='scheduled')
    db.session.add(pickup)
    db.session.flush()

    donor = donation.donor
    notifications.notify(
        donor, 'donation_request', 'New Donation Request',
        f'{volunteer.name} has claimed your donation: {donation.food_name}',
        sender=volunteer, donation=donation, pickup=pickup,
    )
    db.session.commit()

    notifications.send_email(donor.email, 'donationRequest',
                             [donor.name, donation.food_name, volunteer.name])
    notifications.send_email(volunteer.email, 'donationAccepted',
                             [volunteer.name, donation.food_name, donor.name, _pickup_details(donation)])
    if pickup_time:
        notifications.send_email(donor.email, 'pickupScheduled',
                                 [donor.name, donation.food_name, volunteer.name, pickup_time])
    return donation, pickup


def complete(donation_id, caller, thank_you_message='', notes=None, photos=None, now=None):
    """Mark a claimed donation as delivered. Returns ``(donation, pickup)``."""
    _require_active(caller)
    donation = get_donation(donation_id)

    is_claimant = donation.claimed_by is not None and donation.claimed_by == caller.id
    is_donor = donation.donor_id == caller.id
    if not (is_claimant or is_donor or caller.is_admin):
        raise Forbidden('Not authorized to complete this donation')

    now = now or datetime.now()
    donation = _transition(donation, 'completed', ('claimed',),
                           'Only claimed donations can be marked as completed', now,
                           completed_at=now)

    pickup = _open_pickup(donation)
    if pickup is not None:
        pickup.status = 'completed'
        if notes:
            pickup.completion_notes = notes
        if photos:
            pickup.completion_photos = list(photos)

    donor, claimant = donation.donor, donation.claimant
    notifications.notify(
        donor, 'pickup_completed', 'Donation Pickup Completed',
        f'{caller.name} has completed the pickup for {donation.food_name}',
        sender=caller, donation=donation, pickup=pickup,
    )
    notifications.notify(
        claimant, 'pickup_completed', 'Donation Pickup Completed',
        f'You have successfully picked up {donation.food_name} from {donor.name}',
        sender=donor, donation=donation, pickup=pickup,
    )
    db.session.commit()

    notifications.send_email(donor.email, 'pickupCompleted',
                             [donor.name, donation.food_name, thank_you_message or ''])
    return donation, pickup


def expire(donation_id, caller, now=None):
    """Manual "not delivered" path: a claimed donation becomes expired."""
    _require_active(caller)
    donation = get_donation(donation_id)

    is_claimant = donation.claimed_by is not None and donation.claimed_by == caller.id
    if not (is_claimant or caller.is_admin):
        raise Forbidden('Not authorized to mark this donation as not delivered')

    now = now or datetime.now()
    donation = _transition(donation, 'expired', ('claimed',),
                           'Only claimed donations can be marked as not delivered', now,
                           expired_at=now)

    pickup = _open_pickup(donation)
    if pickup is not None:
        pickup.status = 'cancelled'

    donor = donation.donor
    notifications.notify(
        donor, 'donation_expired', 'Donation Not Delivered',
        f'Your donation "{donation.food_name}" was marked as not delivered and has expired.',
        sender=caller, donation=donation, pickup=pickup,
    )
    db.session.commit()

    notifications.send_email(donor.email, 'donationExpired', [donor.name, donation.food_name])
    return donation


def expire_overdue(donation_id, now=None):
    """Sweep path: an available donation past its expiration date expires."""
    now = now or datetime.now()
    donation = get_donation(donation_id)
    donation = _transition(donation, 'expired', ('available',), NO_LONGER_AVAILABLE, now,
                           criteria=(Donation.expiration_date < now,),
                           expired_at=now)

    donor = donation.donor
    notifications.notify(
        donor, 'donation_expired', 'Donation Expired',
        f'Your donation "{donation.food_name}" has expired and is no longer visible to volunteers.',
        donation=donation,
    )
    db.session.commit()

    notifications.send_email(donor.email, 'donationExpired', [donor.name, donation.food_name])
    return donation


def update(donation_id, caller, data, now=None):
    """Merge supplied fields into an available donation."""
    _require_active(caller)
    donation = get_donation(donation_id)
    if donation.donor_id != caller.id and not caller.is_admin:
        raise Forbidden('Not authorized to update this donation')

    message = 'Cannot update a donation that has been claimed or completed'
    if donation.status != 'available':
        raise InvalidState(message)

    values = data.to_fields()
    if not values:
        raise ValidationError('No fields to update')
    _check_fields(data)
    now = now or datetime.now()
    if 'expiration_date' in values:
        if values['expiration_date'] <= now:
            raise ValidationError('Expiration date must be in the future')
        # a new expiry earns a new reminder
        values['reminder_sent_at'] = None

    donation = _conditional_update(donation.id, ('available',), message,
                                   updated_at=now, **values)
    db.session.commit()
    return donation


def delete(donation_id, caller):
    _require_active(caller)
    donation = get_donation(donation_id)
    if donation.donor_id != caller.id and not caller.is_admin:
        raise Forbidden('Not authorized to delete this donation')

    message = 'Cannot delete a donation that has been claimed'
    if donation.status != 'available':
        raise InvalidState(message)

    result = db.session.execute(
        sql_delete(Donation)
        .where(Donation.id == donation.id, Donation.status == 'available')
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.session.rollback()
        raise InvalidState(message)
    db.session.expunge(donation)
    db.session.commit()
    logger.info('Donation %s deleted by user %s', donation_id, caller.id)


def moderate(donation_id, admin, action, now=None):
    """Admin moderation.

    ``approve`` leaves the donation untouched. ``remove`` deletes an available
    donation and expires a claimed one; the donor is told either way.
    Returns the donation, or None when it was deleted.
    """
    _require_active(admin)
    if not admin.is_admin:
        raise Forbidden('Access denied. Admin privileges required.')
    if action not in ('approve', 'remove'):
        raise ValidationError('Invalid action')

    donation = get_donation(donation_id)
    if action == 'approve':
        return donation
    if donation.is_terminal:
        raise InvalidState('This donation is already closed')

    now = now or datetime.now()
    donor, food_name = donation.donor, donation.food_name
    if donation.status == 'available':
        result = db.session.execute(
            sql_delete(Donation)
            .where(Donation.id == donation.id, Donation.status == 'available')
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.session.rollback()
            raise InvalidState(NO_LONGER_AVAILABLE)
        db.session.expunge(donation)
        removed = None
    else:
        removed = _transition(donation, 'expired', ('claimed',), 'This donation is already closed',
                              now, expired_at=now)
        pickup = _open_pickup(removed)
        if pickup is not None:
            pickup.status = 'cancelled'

    notifications.notify(
        donor, 'system', 'Donation Removed',
        f'Your donation "{food_name}" has been removed by an administrator.',
        sender=admin, donation=donation,
    )
    db.session.commit()
    logger.info('Donation %s removed by admin %s', donation_id, admin.id)
    return removed
