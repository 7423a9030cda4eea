from models import db, User, ROLE_ADMIN
import services

DEMO_PASSWORD = "password123"

DEMO_SUBJECTS = [
    {"name": "Mathematics", "assigned_teacher": "Prof. Garcia", "color": "#FF5733",
     "schedule": [{"day": "Monday", "start": "08:00", "end": "10:00"},
                  {"day": "Wednesday", "start": "08:00", "end": "10:00"}]},
    {"name": "Physics", "assigned_teacher": "Prof. Martinez", "color": "#33FF57",
     "schedule": [{"day": "Monday", "start": "10:00", "end": "12:00"}]},
    {"name": "Databases", "assigned_teacher": "Prof. Lopez", "color": "#3357FF",
     "schedule": [{"day": "Tuesday", "start": "14:00", "end": "16:00"},
                  {"day": "Thursday", "start": "14:00", "end": "16:00"}]},
    {"name": "Reading group", "assigned_teacher": "Dr. Rivera", "color": "#AA33FF",
     "schedule": []},
]


def seed_demo_data():
    """Create the demo admin and student. Returns False if they already exist."""
    db.create_all()

    if User.query.filter_by(email="student@example.com").first():
        return False

    services.register_user("Admin", "admin@example.com", DEMO_PASSWORD, role=ROLE_ADMIN)
    student = services.register_user("Test Student", "student@example.com", DEMO_PASSWORD)
    for s in DEMO_SUBJECTS:
        services.create_subject(student, **s)
    return True


if __name__ == "__main__":
    from app import app

    with app.app_context():
        print("Creating tables if not present...")
        if seed_demo_data():
            print("Seed data inserted successfully!")
        else:
            print("Demo user already exists, skipping.")
