"""HTTP functions called from the browser, outside the session/CSRF flow."""
from flask import Blueprint, current_app, jsonify, request

from ..notifications import EmailDeliveryError, send_contact_confirmation, send_contact_notification
from ..utils import get_request_ip, is_valid_email

functions_bp = Blueprint('functions', __name__, url_prefix='/functions')

CONTACT_FIELDS = ('firstName', 'lastName', 'email', 'message')
CORS_ALLOW_HEADERS = 'authorization, x-client-info, apikey, content-type'


class ContactPayloadError(ValueError):
    pass


def _cors_headers():
    return {
        'Access-Control-Allow-Origin': current_app.config.get('CONTACT_ALLOWED_ORIGIN') or '*',
        'Access-Control-Allow-Headers': CORS_ALLOW_HEADERS,
        'Access-Control-Allow-Methods': 'POST, OPTIONS',
    }


def parse_contact_payload(payload):
    if not isinstance(payload, dict):
        raise ContactPayloadError('Request body must be a JSON object.')
    submission = {}
    for field in CONTACT_FIELDS:
        value = payload.get(field)
        if not isinstance(value, str) or not value.strip():
            raise ContactPayloadError(f'Missing or invalid field: {field}')
        submission[field] = value.strip()
    if not is_valid_email(submission['email']):
        raise ContactPayloadError('Invalid email address.')
    return submission


@functions_bp.route('/send-contact-email', methods=['POST', 'OPTIONS'])
def send_contact_email():
    if request.method == 'OPTIONS':
        return '', 200, _cors_headers()

    try:
        submission = parse_contact_payload(request.get_json(silent=True))
        current_app.logger.info(f"Sending contact notification email for: {submission['email']} from {get_request_ip()}")
        admin_response = send_contact_notification(submission)
        current_app.logger.info(f'Admin notification sent successfully: {admin_response}')
        user_response = send_contact_confirmation(submission)
        current_app.logger.info(f'Confirmation sent successfully: {user_response}')
    except (ContactPayloadError, EmailDeliveryError) as exc:
        current_app.logger.error(f'Error in send-contact-email function: {exc}')
        return jsonify({'error': str(exc)}), 500, _cors_headers()
    except Exception:
        current_app.logger.exception('Unexpected error in send-contact-email function.')
        return jsonify({'error': 'Failed to send email.'}), 500, _cors_headers()

    return jsonify({
        'success': True,
        'adminEmail': admin_response,
        'userEmail': user_response,
    }), 200, _cors_headers()
