from flask import Blueprint, current_app, flash, redirect, render_template, request, url_for
from flask_login import login_required

from ..auth import AuthError, current_auth, get_auth_context
from ..utils import clean_text, get_request_ip

auth_bp = Blueprint('auth', __name__)


@auth_bp.route('/auth', methods=['GET', 'POST'])
def sign_in():
    state = current_auth()
    if state.is_authenticated and state.is_admin:
        return redirect(url_for('admin.dashboard'))

    if request.method == 'POST':
        email = request.form.get('email', '')
        password = request.form.get('password', '')
        try:
            state = get_auth_context().sign_in(email, password)
        except AuthError as exc:
            current_app.logger.warning(f"Failed sign-in for {clean_text(email, 254)!r} from {get_request_ip()}")
            flash(str(exc), 'danger')
            return render_template('auth.html', email=email), 401
        if state.is_admin:
            flash('You have been signed in successfully.', 'success')
            return redirect(url_for('admin.dashboard'))
        flash('Your account does not have admin access.', 'danger')
        return redirect(url_for('auth.sign_in'))
    return render_template('auth.html', email='')


@auth_bp.route('/auth/sign-out', methods=['POST'])
@login_required
def sign_out():
    get_auth_context().sign_out()
    flash('You have been signed out.', 'success')
    return redirect(url_for('auth.sign_in'))
