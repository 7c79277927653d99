"""Session authentication (JSON): register, login, logout, me."""
import logging
from datetime import datetime, timezone

from flask import Blueprint, jsonify, request, session
from flask_login import login_user, logout_user, login_required, current_user
from flask_wtf.csrf import generate_csrf
from sqlalchemy.exc import SQLAlchemyError

from constants import (
    RATE_LIMITS,
    MIN_PASSWORD_LENGTH,
    PASSWORD_SPECIAL_CHARS,
    MAX_FAILED_LOGIN_ATTEMPTS,
)
from extensions import db, limiter
from models import User
from services.errors import InputError
from utils.routes import handle_social_errors
from utils.validation import validate_email

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__)

ACCOUNT_CREATED = 'Account created.'


def validate_password_strength(password: str) -> list[str]:
    """Validate password meets security requirements."""
    errors = []
    if len(password) < MIN_PASSWORD_LENGTH:
        errors.append(f'Password must be at least {MIN_PASSWORD_LENGTH} characters')
    if not any(c.isupper() for c in password):
        errors.append('Password must contain at least one uppercase letter')
    if not any(c.islower() for c in password):
        errors.append('Password must contain at least one lowercase letter')
    if not any(c.isdigit() for c in password):
        errors.append('Password must contain at least one digit')
    if not any(c in PASSWORD_SPECIAL_CHARS for c in password):
        errors.append('Password must contain at least one special character')
    return errors


def request_data():
    """JSON body, falling back to form data."""
    return request.get_json(silent=True) or request.form


@auth_bp.route('/register', methods=['POST'])
@limiter.limit(RATE_LIMITS['register'], error_message="Registration limit reached. Please try later.")
@handle_social_errors
def register():
    """Create an account and start a session."""
    data = request_data()
    email = validate_email(data.get('email', ''))
    password = data.get('password', '')
    name = (data.get('name') or '').strip()

    password_errors = validate_password_strength(password)
    if password_errors:
        raise InputError('Password does not meet requirements', code='weak_password', errors=password_errors)

    # Don't reveal whether the email exists (prevents enumeration)
    if User.query.filter_by(email=email).first():
        logger.info(f'Registration attempted for existing email: {email}')
        return jsonify({'message': ACCOUNT_CREATED}), 201

    try:
        user = User(email=email, name=name or None)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception('Failed to create user')
        return jsonify({'code': 'store_error', 'message': 'An error occurred. Please try again.'}), 500

    login_user(user)
    session.permanent = True
    return jsonify({'message': ACCOUNT_CREATED, 'user': user.to_dict()}), 201


@auth_bp.route('/login', methods=['POST'])
@limiter.limit(RATE_LIMITS['login'], error_message="Too many login attempts. Please wait a minute.")
def login():
    """Handle user login with brute force protection."""
    data = request_data()
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''
    remember = bool(data.get('remember'))

    if not email or not password:
        return jsonify({'code': 'missing_credentials', 'message': 'Please enter both email and password.'}), 400

    user = User.query.filter_by(email=email).first()

    # Timing-safe: always hash something to prevent user enumeration
    if user is None:
        User._ph.hash('dummy_password_for_timing')
        return jsonify({'code': 'invalid_credentials', 'message': 'Invalid email or password.'}), 401

    if user.is_locked():
        db.session.commit()
        locked_until = user.locked_until
        if locked_until.tzinfo is None:
            locked_until = locked_until.replace(tzinfo=timezone.utc)
        remaining = (locked_until - datetime.now(timezone.utc)).total_seconds() // 60
        return jsonify({
            'code': 'account_locked',
            'message': f'Account locked. Try again in {int(remaining) + 1} minutes.',
        }), 423

    if not user.check_password(password):
        user.record_failed_login()
        db.session.commit()
        remaining_attempts = max(0, MAX_FAILED_LOGIN_ATTEMPTS - user.failed_login_attempts)
        logger.info(f'Failed login for user {user.id} ({remaining_attempts} attempts remaining)')
        return jsonify({
            'code': 'invalid_credentials',
            'message': 'Invalid email or password.',
            'remaining_attempts': remaining_attempts,
        }), 401

    if not user.is_active:
        return jsonify({'code': 'account_disabled', 'message': 'This account is disabled.'}), 403

    user.record_successful_login()
    db.session.commit()

    login_user(user, remember=remember)
    session.permanent = True  # Enable session timeout from PERMANENT_SESSION_LIFETIME
    return jsonify({'user': user.to_dict()})


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    """Handle user logout. POST-only to prevent CSRF via GET."""
    logout_user()
    return jsonify({'message': 'Logged out.'})


@auth_bp.route('/me')
@login_required
def me():
    return jsonify({'user': current_user.to_dict()})


@auth_bp.route('/csrf-token')
def csrf_token():
    """Token for the X-CSRFToken header on POST requests."""
    return jsonify({'csrf_token': generate_csrf()})
