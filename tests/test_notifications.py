from smtplib import SMTPException
from unittest.mock import patch

import pytest

from foodrescue.errors import Forbidden, NotFound
from foodrescue.extensions import db
from foodrescue.services import notifications


def test_send_email_skipped_when_disabled(app):
    result = notifications.send_email('dana@example.org', 'donationExpired', ['Dana', 'Bread'])

    assert result == {'success': False, 'skipped': True}


def test_send_email_unknown_template(app):
    result = notifications.send_email('dana@example.org', 'birthdayCard', [])

    assert result['success'] is False
    assert 'birthdayCard' in result['error']


def test_send_email_renders_template(app):
    app.config['MAIL_ENABLED'] = True

    with patch.object(notifications.mail, 'send') as send:
        result = notifications.send_email('dana@example.org', 'donationExpired', ['Dana', 'Bread'])

    assert result == {'success': True}
    message = send.call_args[0][0]
    assert message.subject == 'Your Donation Has Expired: Bread'
    assert message.recipients == ['dana@example.org']
    assert 'Hello Dana' in message.html
    assert app.config['FRONTEND_URL'] in message.html


def test_send_email_failure_is_reported_not_raised(app):
    app.config['MAIL_ENABLED'] = True

    with patch.object(notifications.mail, 'send', side_effect=SMTPException('connection refused')):
        result = notifications.send_email('dana@example.org', 'donationExpiringSoon', ['Dana', 'Bread'])

    assert result['success'] is False
    assert 'connection refused' in result['error']


def test_list_and_mark_read(donor, volunteer):
    first = notifications.notify(donor, 'system', 'Welcome', 'Hello there', sender=volunteer)
    notifications.notify(donor, 'system', 'Reminder', 'Check your donations')
    notifications.notify(volunteer, 'system', 'Other', 'Not for the donor')
    db.session.commit()

    assert len(notifications.list_for_user(donor)) == 2
    assert notifications.unread_count(donor) == 2

    notifications.mark_read(first.id, donor)

    assert notifications.unread_count(donor) == 1
    unread = notifications.list_for_user(donor, unread_only=True)
    assert [n.title for n in unread] == ['Reminder']


def test_mark_read_checks_recipient(donor, volunteer):
    note = notifications.notify(donor, 'system', 'Private', 'Only for the donor')
    db.session.commit()

    with pytest.raises(Forbidden):
        notifications.mark_read(note.id, volunteer)
    with pytest.raises(NotFound):
        notifications.mark_read(9999, donor)


def test_mark_all_read(donor, volunteer):
    for title in ('One', 'Two', 'Three'):
        notifications.notify(donor, 'system', title, 'Message')
    notifications.notify(volunteer, 'system', 'Untouched', 'Message')
    db.session.commit()

    assert notifications.mark_all_read(donor) == 3
    assert notifications.unread_count(donor) == 0
    assert notifications.unread_count(volunteer) == 1


def test_notification_to_dict(donor, volunteer):
    note = notifications.notify(donor, 'system', 'Hi', 'Message body', sender=volunteer)
    db.session.commit()

    data = note.to_dict()
    assert data['recipient'] == donor.id
    assert data['sender'] == volunteer.id
    assert data['read'] is False
    assert data['relatedDonation'] is None
