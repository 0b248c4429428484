import base64
import json
import urllib.error
import urllib.parse
from urllib.request import Request, urlopen

from flask import current_app
from markupsafe import escape

RESEND_API_URL = 'https://api.resend.com/emails'
MAILGUN_API_URL = 'https://api.mailgun.net/v3/{domain}/messages'


class EmailDeliveryError(Exception):
    pass


def _safe_header_value(value, max_length=240):
    # Prevent header injection by stripping CR/LF and collapsing whitespace.
    cleaned = ' '.join((value or '').replace('\r', ' ').replace('\n', ' ').split())
    return cleaned[:max_length]


def _split_recipients(raw):
    recipients = []
    seen = set()
    for item in (raw or '').split(','):
        cleaned = _safe_header_value(item, max_length=320)
        normalized = cleaned.lower()
        if cleaned and normalized not in seen:
            recipients.append(cleaned)
            seen.add(normalized)
    return recipients


def _read_json(resp):
    raw = resp.read().decode('utf-8', errors='replace')
    if not raw.strip():
        return {}
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return {'raw': raw}


def _send_via_resend(message):
    """Send email via the Resend HTTP API; return its JSON response."""
    api_key = (current_app.config.get('RESEND_API_KEY') or '').strip()
    if not api_key:
        return None  # Not configured, fall through to Mailgun

    payload = {
        'from': message['from'],
        'to': message['to'],
        'subject': message['subject'],
        'html': message['html'],
    }
    if message.get('reply_to'):
        payload['reply_to'] = message['reply_to']

    req = Request(RESEND_API_URL, data=json.dumps(payload).encode('utf-8'), method='POST')
    req.add_header('Authorization', f'Bearer {api_key}')
    req.add_header('Content-Type', 'application/json')
    timeout = current_app.config.get('EMAIL_TIMEOUT_SECONDS', 15)

    try:
        with urlopen(req, timeout=timeout) as resp:  # nosec B310
            return _read_json(resp)
    except urllib.error.HTTPError as e:
        error_body = e.read().decode('utf-8', errors='replace')
        current_app.logger.error(f'Resend API error {e.code}: {error_body}')
        raise EmailDeliveryError(f'Email provider rejected the message ({e.code}).') from e
    except (urllib.error.URLError, OSError) as e:
        current_app.logger.exception('Resend email delivery failed.')
        raise EmailDeliveryError('Email provider unreachable.') from e


def _send_via_mailgun(message):
    """Send email via the Mailgun HTTP API; return its JSON response."""
    api_key = (current_app.config.get('MAILGUN_API_KEY') or '').strip()
    domain = (current_app.config.get('MAILGUN_DOMAIN') or '').strip()
    if not api_key or not domain:
        return None

    fields = {
        'from': message['from'],
        'to': ', '.join(message['to']),
        'subject': message['subject'],
        'html': message['html'],
    }
    if message.get('reply_to'):
        fields['h:Reply-To'] = message['reply_to']
    data = urllib.parse.urlencode(fields).encode('utf-8')

    auth = base64.b64encode(f"api:{api_key}".encode()).decode()
    req = Request(MAILGUN_API_URL.format(domain=domain), data=data, method='POST')
    req.add_header('Authorization', f'Basic {auth}')
    timeout = current_app.config.get('EMAIL_TIMEOUT_SECONDS', 15)

    try:
        with urlopen(req, timeout=timeout) as resp:  # nosec B310
            return _read_json(resp)
    except urllib.error.HTTPError as e:
        error_body = e.read().decode('utf-8', errors='replace')
        current_app.logger.error(f'Mailgun API error {e.code}: {error_body}')
        raise EmailDeliveryError(f'Email provider rejected the message ({e.code}).') from e
    except (urllib.error.URLError, OSError) as e:
        current_app.logger.exception('Mailgun email delivery failed.')
        raise EmailDeliveryError('Email provider unreachable.') from e


def send_email(to, subject, html, reply_to=None):
    recipients = [r for r in (_safe_header_value(item, max_length=320) for item in to) if r]
    if not recipients:
        raise EmailDeliveryError('No recipients configured.')

    message = {
        'from': _safe_header_value(current_app.config.get('MAIL_FROM') or 'no-reply@localhost', max_length=254),
        'to': recipients,
        'subject': _safe_header_value(subject),
        'html': html,
        'reply_to': _safe_header_value(reply_to or '', max_length=320) or None,
    }

    # Try Resend first, fall back to Mailgun
    for provider in (_send_via_resend, _send_via_mailgun):
        result = provider(message)
        if result is not None:
            return result

    raise EmailDeliveryError('No email provider configured (set RESEND_API_KEY or MAILGUN_API_KEY+MAILGUN_DOMAIN).')


def send_contact_notification(submission):
    """Notify the site operators about a contact form submission."""
    recipients = _split_recipients(current_app.config.get('CONTACT_NOTIFICATION_EMAILS'))
    if not recipients:
        raise EmailDeliveryError('CONTACT_NOTIFICATION_EMAILS is empty.')

    first_name = escape(submission['firstName'])
    last_name = escape(submission['lastName'])
    email = escape(submission['email'])
    message = escape(submission['message'])
    html = "\n".join([
        "<h2>New Contact Form Submission</h2>",
        f"<p><strong>From:</strong> {first_name} {last_name}</p>",
        f'<p><strong>Email:</strong> <a href="mailto:{email}">{email}</a></p>',
        "<p><strong>Message:</strong></p>",
        f'<p style="white-space: pre-wrap;">{message}</p>',
        '<hr>',
        f"<p>You can reply directly to this email to respond to {first_name}.</p>",
    ])
    subject = f"New Contact Form Submission from {submission['firstName']} {submission['lastName']}"
    return send_email(recipients, subject, html, reply_to=submission['email'])


def send_contact_confirmation(submission):
    """Confirm receipt to the person who submitted the contact form."""
    first_name = escape(submission['firstName'])
    message = escape(submission['message'])
    html = "\n".join([
        f"<h2>Thank you for contacting us, {first_name}!</h2>",
        "<p>We have received your message and will get back to you as soon as possible.</p>",
        "<p><strong>Your message:</strong></p>",
        f'<p style="white-space: pre-wrap;">{message}</p>',
        "<p>Best regards,<br>The ForeSite AI Team</p>",
    ])
    return send_email([submission['email']], 'We received your message', html)
