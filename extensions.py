"""
extensions.py - Flask Extensions
Extensions are created here to avoid circular imports and bound in app.py with init_app().
"""

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager
from flask_bcrypt import Bcrypt

# ORM for every table (students, grades, grading systems, ...)
db = SQLAlchemy()

# Schema migrations: flask db migrate / flask db upgrade
migrate = Migrate()

# Session-based login for admins and advisors
login_manager = LoginManager()

# Password hashing
bcrypt = Bcrypt()
