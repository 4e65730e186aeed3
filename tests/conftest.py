"""
Shared test fixtures and helpers for the Quarry test suite.
"""

from types import SimpleNamespace

import pytest

from quarry.db.engine import Database, reset_databases, set_database
from quarry.models import Model, RelationshipRegistry


SCHOOL_SCHEMA = [
    'CREATE TABLE "dorm" ("id" INTEGER PRIMARY KEY AUTOINCREMENT, "name" TEXT)',
    'CREATE TABLE "student" ('
    '"id" INTEGER PRIMARY KEY AUTOINCREMENT, "name" TEXT, "age" INTEGER, "dorm_id" INTEGER)',
    'CREATE TABLE "car" ("id" INTEGER PRIMARY KEY AUTOINCREMENT, "student_id" INTEGER, "plate" TEXT)',
    'CREATE TABLE "club" ("id" INTEGER PRIMARY KEY AUTOINCREMENT, "name" TEXT)',
    'CREATE TABLE "memberships" ("student_id" INTEGER NOT NULL, "club_id" INTEGER NOT NULL)',
]


# ============================================================================
# Database
# ============================================================================


@pytest.fixture
def db():
    """Connected in-memory SQLite database with the query log enabled."""
    database = Database("default", {"url": "sqlite:///:memory:", "log_queries": True})
    database.connect()
    set_database(database)
    yield database
    reset_databases()


@pytest.fixture
def school_db(db):
    """Database with the dorm / student / car / club / memberships tables."""
    for statement in SCHOOL_SCHEMA:
        db.exec(statement)
    db.queries.clear()
    return db


# ============================================================================
# Models
# ============================================================================


@pytest.fixture
def registry():
    """Fresh relationship registry so model classes never leak between tests."""
    return RelationshipRegistry("test")


@pytest.fixture
def school(registry, school_db):
    """Dorm / Student / Car / Club models bound to the school tables."""
    reg = registry

    class Dorm(Model):
        registry = reg
        has_many = {"students": {}}

    class Student(Model):
        registry = reg
        belongs_to = {"dorm": {}}
        has_one = {"car": {}}
        has_many = {"clubs": {"through": "memberships"}}
        cascade_delete = True

    class Car(Model):
        registry = reg
        belongs_to = {"student": {}}

    class Club(Model):
        registry = reg
        has_many = {"students": {"through": "memberships"}}

    return SimpleNamespace(Dorm=Dorm, Student=Student, Car=Car, Club=Club, db=school_db)
