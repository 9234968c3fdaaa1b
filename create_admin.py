"""
create_admin.py - Quick script to create an admin account
Also seeds the default DepEd grading system on a fresh install.
Run this from your project root directory: python create_admin.py
"""

import os

import grading
from config import Config
from extensions import db, bcrypt
from models import GradingSystem, User

DEFAULT_ADMIN_EMAIL = 'admin@gradesheet.edu'
DEFAULT_ADMIN_PASSWORD = 'admin123'


def create_admin_account(email=DEFAULT_ADMIN_EMAIL, password=DEFAULT_ADMIN_PASSWORD):
    """
    Create the admin user unless it exists

    Returns:
        tuple: (User, created)
    """
    existing_admin = User.query.filter_by(email=email).first()
    if existing_admin:
        return existing_admin, False

    admin = User(
        email=email,
        password=bcrypt.generate_password_hash(password).decode('utf-8'),
        role='admin',
        first_name='System',
        last_name='Administrator',
    )
    db.session.add(admin)
    db.session.commit()
    return admin, True


def ensure_default_grading_system(created_by=None):
    """
    Seed and activate the DepEd K-12 Standard system when no grading system exists

    Returns:
        GradingSystem or None: the new system, None when systems already exist
    """
    if GradingSystem.query.count() > 0:
        return None

    weights = grading.DEFAULT_WEIGHTS
    system = GradingSystem.create(
        Config.DEFAULT_GRADING_SYSTEM_NAME,
        weights.written_work,
        weights.performance_task,
        weights.quarterly_assessment,
        description=Config.DEFAULT_GRADING_SYSTEM_DESCRIPTION,
        created_by=created_by,
    )
    return GradingSystem.activate(system.id)


if __name__ == '__main__':
    from app import create_app

    app = create_app(os.environ.get('FLASK_CONFIG', 'development'))

    with app.app_context():
        db.create_all()

        admin, created = create_admin_account()
        if created:
            print("✅ Admin account created successfully!")
            print("-" * 50)
            print("Login credentials:")
            print(f"  Email: {DEFAULT_ADMIN_EMAIL}")
            print(f"  Password: {DEFAULT_ADMIN_PASSWORD}")
            print("-" * 50)
            print("⚠️ IMPORTANT: Change this password after first login!")
        else:
            print("❌ Admin account already exists!")
            print(f"   Email: {admin.email}")
            print(f"   Role: {admin.role}")

        system = ensure_default_grading_system(created_by=admin.id)
        if system:
            print(f"\n✅ Default grading system '{system.name}' created and activated "
                  f"({system.weights_label()})")
        else:
            active = GradingSystem.query.filter_by(is_active=True).first()
            print(f"\n📊 Active grading system: {active.name if active else 'none'}")

        # Show all users
        all_users = User.query.all()
        print(f"\n📊 Total users in database: {len(all_users)}")

        if all_users:
            print("\nAll users:")
            for user in all_users:
                print(f"  • {user.email} ({user.role})")
