"""In-app notifications and outbound email.

``notify`` only adds a Notification to the current session; the caller
commits it together with the change that triggered it. ``send_email`` never
raises: mail failures are logged and reported in the returned dict.
"""
import logging

from flask import current_app
from flask_mail import Message
from sqlalchemy import update

from foodrescue.errors import DependencyFailure, Forbidden, NotFound
from foodrescue.extensions import db, mail
from foodrescue.models.notification_model import Notification

logger = logging.getLogger(__name__)

_FOOTER = ('<p style="color: #666; font-size: 12px; margin-top: 30px;">'
           'This is an automated message from Food Rescue Hub. Please do not reply to this email.</p>')


def _layout(heading, body, link_path, link_label, closing):
    link = f"{current_app.config['FRONTEND_URL']}{link_path}"
    return (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
        f'<h2 style="color: #4CAF50;">{heading}</h2>'
        f'{body}'
        f'<a href="{link}" style="background-color: #4CAF50; color: white; padding: 10px 15px; '
        f'text-decoration: none; border-radius: 4px; display: inline-block; margin-top: 15px;">{link_label}</a>'
        f'<p style="margin-top: 20px;">{closing}</p>'
        f'{_FOOTER}'
        '</div>'
    )


def _donation_request(donor_name, food_name, requester_name):
    return (
        f'New Request for Your Donation: {food_name}',
        _layout(
            'New Food Donation Request',
            f'<p>Hello {donor_name},</p>'
            f'<p><strong>{requester_name}</strong> has claimed your donation of <strong>{food_name}</strong>.</p>',
            '/donor/dashboard', 'View Request',
            'Thank you for being part of our food rescue community!',
        ),
    )


def _donation_accepted(volunteer_name, food_name, donor_name, pickup_details):
    return (
        f'Your Food Request Has Been Accepted: {food_name}',
        _layout(
            'Food Request Accepted',
            f'<p>Hello {volunteer_name},</p>'
            f'<p>You have claimed <strong>{food_name}</strong> from <strong>{donor_name}</strong>.</p>'
            f'<h3>Pickup Details:</h3><p>{pickup_details}</p>',
            '/volunteer/dashboard', 'View Details',
            'Thank you for being part of our food rescue community!',
        ),
    )


def _pickup_scheduled(donor_name, food_name, requester_name, pickup_time):
    return (
        f'Pickup Scheduled for {food_name}',
        _layout(
            'Pickup Scheduled',
            f'<p>Hello {donor_name},</p>'
            f'<p><strong>{requester_name}</strong> has scheduled a pickup for <strong>{food_name}</strong>.</p>'
            f'<h3>Scheduled Time:</h3><p>{pickup_time:%Y-%m-%d %H:%M}</p>'
            '<p>Please ensure the donation is ready for pickup at the scheduled time.</p>',
            '/donor/dashboard', 'View Details',
            'Thank you for your contribution to reducing food waste!',
        ),
    )


def _pickup_completed(recipient_name, food_name, thank_you_message=''):
    note = f'<p>Message from recipient: "{thank_you_message}"</p>' if thank_you_message else ''
    return (
        f'Pickup Completed for {food_name}',
        _layout(
            'Pickup Completed',
            f'<p>Hello {recipient_name},</p>'
            f'<p>The pickup for <strong>{food_name}</strong> has been successfully completed.</p>{note}',
            '/dashboard', 'View Dashboard',
            'Thank you for your contribution to reducing food waste and helping those in need!',
        ),
    )


def _donation_expired(donor_name, food_name):
    return (
        f'Your Donation Has Expired: {food_name}',
        _layout(
            'Donation Expired',
            f'<p>Hello {donor_name},</p>'
            f'<p>Your donation <strong>{food_name}</strong> has expired and is no longer visible to volunteers.</p>',
            '/donor/dashboard', 'View Donations',
            'Thank you for being part of our food rescue community!',
        ),
    )


def _donation_expiring_soon(donor_name, food_name):
    return (
        f'Your Donation Expires Soon: {food_name}',
        _layout(
            'Donation Expiring Soon',
            f'<p>Hello {donor_name},</p>'
            f'<p>Your donation <strong>{food_name}</strong> will expire in less than 24 hours.</p>',
            '/donor/dashboard', 'View Donations',
            'Thank you for being part of our food rescue community!',
        ),
    )


EMAIL_TEMPLATES = {
    'donationRequest': _donation_request,
    'donationAccepted': _donation_accepted,
    'pickupScheduled': _pickup_scheduled,
    'pickupCompleted': _pickup_completed,
    'donationExpired': _donation_expired,
    'donationExpiringSoon': _donation_expiring_soon,
}


def send_email(to, template, args):
    """Render ``template`` with positional ``args`` and send it to ``to``."""
    if template not in EMAIL_TEMPLATES:
        logger.error('Unknown email template %s', template)
        return {'success': False, 'error': f'Unknown template: {template}'}
    if not to:
        return {'success': False, 'error': 'No recipient address'}
    if not current_app.config.get('MAIL_ENABLED', True):
        logger.info('Mail disabled, skipping %s email to %s', template, to)
        return {'success': False, 'skipped': True}

    try:
        subject, html = EMAIL_TEMPLATES[template](*args)
        mail.send(Message(subject=subject, recipients=[to], html=html))
    except Exception as e:
        failure = DependencyFailure(f'Email delivery failed: {e}')
        logger.error('Error sending %s email to %s: %s', template, to, failure.description)
        return {'success': False, 'error': failure.description}

    logger.info('Email %s sent to %s', template, to)
    return {'success': True}


def notify(recipient, type, title, message, sender=None, donation=None, pickup=None):
    """Queue an in-app notification on the current session."""
    notification = Notification(
        recipient_id=recipient.id,
        sender_id=sender.id if sender else None,
        type=type,
        title=title,
        message=message,
        donation_id=donation.id if donation else None,
        pickup_id=pickup.id if pickup else None,
    )
    db.session.add(notification)
    return notification


def list_for_user(user, unread_only=False):
    query = Notification.query.filter_by(recipient_id=user.id)
    if unread_only:
        query = query.filter_by(read=False)
    return query.order_by(Notification.created_at.desc(), Notification.id.desc()).all()


def unread_count(user):
    return Notification.query.filter_by(recipient_id=user.id, read=False).count()


def mark_read(notification_id, user):
    notification = db.session.get(Notification, notification_id)
    if notification is None:
        raise NotFound('Notification not found')
    if notification.recipient_id != user.id:
        raise Forbidden('Not authorized to update this notification')
    notification.read = True
    db.session.commit()
    return notification


def mark_all_read(user):
    result = db.session.execute(
        update(Notification)
        .where(Notification.recipient_id == user.id, Notification.read.is_(False))
        .values(read=True)
    )
    db.session.commit()
    return result.rowcount
