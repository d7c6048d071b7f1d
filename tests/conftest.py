import os
import pathlib
import sys
from datetime import date

import pytest

PROJECT_ROOT = pathlib.Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

os.environ.setdefault("FLASK_SKIP_SEED", "1")

from glz.app import create_app, db
from glz.models import Group, User


def pytest_collection_modifyitems(config, items):
    for item in items:
        if "slow" in item.keywords:
            continue
        item.add_marker("full")
        if "no_smoke" in item.keywords:
            continue
        item.add_marker("smoke")


@pytest.fixture
def app():
    os.environ["DATABASE_URL"] = "sqlite:///:memory:"
    application = create_app({"TESTING": True})
    with application.app_context():
        db.create_all()
        yield application
        db.session.remove()


@pytest.fixture
def client(app):
    return app.test_client()


def make_user(username="admin", role="admin", password="secret-pass"):
    user = User(username=username, role=role)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    return user


def make_group(level="B1", start=date(2024, 1, 1), time_slot="MO", name="Alpha", created_by=None):
    group = Group(
        level=level,
        start_date=start,
        time_slot=time_slot,
        name=name,
        created_by=created_by,
    )
    db.session.add(group)
    db.session.commit()
    return group


def login(client, user_id):
    with client.session_transaction() as sess:
        sess["user_id"] = user_id


def cert_payload(group, **overrides):
    data = {
        "fullName": "Jane Doe",
        "dateOfBirth": "1995-06-01",
        "placeOfBirth": "Douala",
        "referenceLevel": group.level,
        "courseStartDate": group.start_date.isoformat(),
        "courseEndDate": "2024-03-01",
        "lessonUnits": 8,
        "lessonsAttended": 8,
        "evaluation": "Good",
        "courseInfo": "Complete level",
        "comments": "",
        "groupCode": group.group_code,
    }
    data.update(overrides)
    return data
