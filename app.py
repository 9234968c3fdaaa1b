"""
app.py - Application Factory
Entry point for the GradeSheet Flask application.
Uses the Application Factory pattern for modularity and testing.
"""

import logging

from flask import Flask, jsonify
from sqlalchemy.exc import SQLAlchemyError

from config import config
from errors import GradebookError
from extensions import db, migrate, login_manager, bcrypt

logger = logging.getLogger(__name__)


def create_app(config_name='development'):
    """
    Application Factory Function

    Args:
        config_name (str): Configuration to use ('development', 'production', 'testing')

    Returns:
        Flask: Configured Flask application instance
    """
    app = Flask(__name__)

    # Load configuration from config.py based on environment
    config_class = config[config_name]
    app.config.from_object(config_class)
    config_class.init_app(app)

    configure_logging(app)

    # Initialize extensions with the app
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    bcrypt.init_app(app)

    # User loader callback for Flask-Login
    @login_manager.user_loader
    def load_user(user_id):
        """Load user by ID for Flask-Login session management"""
        from models import User
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'success': False, 'error': 'Please log in to access this page.'}), 401

    # Register blueprints (routes)
    register_blueprints(app)

    # Register error handlers
    register_error_handlers(app)

    # Import models so Flask-Migrate can detect them
    with app.app_context():
        import models  # noqa: F401

    logger.info("GradeSheet app created with %s config", config_name)
    return app


def configure_logging(app):
    level = getattr(logging, app.config.get('LOG_LEVEL', 'INFO'), logging.INFO)
    logging.basicConfig(
        level=level,
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s'
    )
    app.logger.setLevel(level)


def register_blueprints(app):
    """
    Register all application blueprints (modular route handlers)
    """
    from blueprints.auth.routes import auth_bp
    from blueprints.admin.routes import admin_bp
    from blueprints.students.routes import students_bp
    from blueprints.grades.routes import grades_bp
    from blueprints.attendance.routes import attendance_bp
    from blueprints.analytics.routes import analytics_bp
    from blueprints.portal.routes import portal_bp

    # Register with URL prefixes
    app.register_blueprint(auth_bp, url_prefix='/auth')
    app.register_blueprint(admin_bp, url_prefix='/admin')
    app.register_blueprint(students_bp, url_prefix='/students')
    app.register_blueprint(grades_bp, url_prefix='/grades')
    app.register_blueprint(attendance_bp, url_prefix='/attendance')
    app.register_blueprint(analytics_bp, url_prefix='/analytics')
    app.register_blueprint(portal_bp, url_prefix='/portal')

    @app.route('/')
    def index():
        """Health check"""
        return jsonify({'success': True, 'app': 'GradeSheet'})


def register_error_handlers(app):
    """
    Register JSON error handlers for domain errors and common HTTP errors
    """
    @app.errorhandler(GradebookError)
    def gradebook_error(error):
        if error.status_code >= 500:
            logger.error("%s: %s", error.__class__.__name__, error.message)
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(SQLAlchemyError)
    def database_error(error):
        db.session.rollback()
        logger.exception("Database error")
        return jsonify({'success': False, 'error': 'A database error occurred. Please try again.'}), 500

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'success': False, 'error': 'Not found'}), 404

    @app.errorhandler(403)
    def forbidden(error):
        return jsonify({'success': False, 'error': 'Access denied'}), 403

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'success': False, 'error': 'Method not allowed'}), 405

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()  # Rollback any failed database transactions
        return jsonify({'success': False, 'error': 'Internal server error'}), 500


# Run the application
if __name__ == '__main__':
    app = create_app('development')

    app.run(
        host='0.0.0.0',
        port=5000,
        debug=True
    )
