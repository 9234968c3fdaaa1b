"""
blueprints/auth/routes.py - Authentication Blueprint
Handles admin and advisor login, logout, and the current session.
"""

import logging

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required, login_user, logout_user

from extensions import bcrypt
from models import ROLES, User

logger = logging.getLogger(__name__)

# Create blueprint
auth_bp = Blueprint('auth', __name__)


@auth_bp.route('/login', methods=['POST'])
def login():
    """
    Admin and advisor login
    Uses email for authentication
    """
    data = request.get_json(silent=True) or request.form
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''

    # Validate input
    if not email or not password:
        return jsonify({'success': False, 'error': 'Please enter both email and password.'}), 400

    user = User.query.filter_by(email=email).first()

    if user is None or not bcrypt.check_password_hash(user.password, password):
        logger.warning("Failed login attempt for %s", email)
        return jsonify({'success': False, 'error': 'Invalid email or password.'}), 401

    if user.role not in ROLES:
        return jsonify({'success': False, 'error': 'This login is for staff only.'}), 403

    login_user(user, remember=bool(data.get('remember')))
    logger.info("User %s logged in", user.email)

    return jsonify({
        'success': True,
        'message': f'Welcome back, {user.first_name}!',
        'user': user.to_dict()
    })


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    """
    Logout current user
    """
    logger.info("User %s logged out", current_user.email)
    logout_user()
    return jsonify({'success': True, 'message': 'You have been logged out successfully.'})


@auth_bp.route('/me')
@login_required
def me():
    """Current user, with advisor assignments when applicable"""
    data = current_user.to_dict()
    if current_user.is_advisor() and current_user.advisor_profile:
        data['advisor'] = current_user.advisor_profile.to_dict()
    return jsonify({'success': True, 'user': data})
