"""Tests for database migrations.

These run against a SEPARATE PostgreSQL database named by
MIGRATIONS_DATABASE_URL, because they drop and recreate the schema.
They are skipped when the variable is unset.
"""

import os
from pathlib import Path
from uuid import uuid4

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

MIGRATIONS_DIR = Path(__file__).resolve().parents[2] / "migrations"

pytestmark = pytest.mark.skipif(
    not os.environ.get("MIGRATIONS_DATABASE_URL"),
    reason="MIGRATIONS_DATABASE_URL not set",
)


def run_alembic(engine, action: str, revision: str) -> None:
    """Run an alembic upgrade/downgrade over the given engine."""
    config = Config()
    config.set_main_option("script_location", str(MIGRATIONS_DIR / "alembic"))
    with engine.begin() as connection:
        config.attributes["connection"] = connection
        getattr(command, action)(config, revision)


@pytest.fixture(scope="module")
def migrated_engine():
    engine = create_engine(os.environ["MIGRATIONS_DATABASE_URL"])

    # Previous runs may have left the schema behind
    run_alembic(engine, "downgrade", "base")
    run_alembic(engine, "upgrade", "head")

    yield engine

    run_alembic(engine, "downgrade", "base")
    engine.dispose()


def _insert_user(session: Session, email: str | None = None):
    user_id = uuid4()
    session.execute(
        text("INSERT INTO users (id, name, email) VALUES (:id, 'Test', :email)"),
        {"id": user_id, "email": email or f"{user_id}@example.com"},
    )
    return user_id


def _insert_companion(session: Session, user_id, name: str = "Sage", is_active: bool = True):
    companion_id = uuid4()
    session.execute(
        text("""
            INSERT INTO companions (id, user_id, name, description, personality, category, is_active)
            VALUES (:id, :user_id, :name, 'desc', 'kind', 'General', :is_active)
        """),
        {"id": companion_id, "user_id": user_id, "name": name, "is_active": is_active},
    )
    return companion_id


class TestMigrationUpgradeDowngrade:
    def test_round_trip(self, migrated_engine):
        run_alembic(migrated_engine, "downgrade", "base")
        assert "users" not in inspect(migrated_engine).get_table_names()

        run_alembic(migrated_engine, "upgrade", "head")
        tables = set(inspect(migrated_engine).get_table_names())
        assert {"users", "companions", "conversations", "messages"} <= tables


class TestSchemaConstraints:
    def test_duplicate_email_rejected(self, migrated_engine):
        with Session(migrated_engine) as session:
            _insert_user(session, "dup@example.com")

            with pytest.raises(IntegrityError) as exc_info:
                _insert_user(session, "dup@example.com")
                session.commit()

            session.rollback()
            assert "uq_users_email" in str(exc_info.value)

    def test_invalid_role_rejected(self, migrated_engine):
        with Session(migrated_engine) as session:
            with pytest.raises(IntegrityError) as exc_info:
                session.execute(
                    text("""
                        INSERT INTO users (id, name, email, role)
                        VALUES (:id, 'Test', :email, 'superuser')
                    """),
                    {"id": uuid4(), "email": f"{uuid4()}@example.com"},
                )
                session.commit()

            session.rollback()
            assert "ck_users_role" in str(exc_info.value)

    def test_companion_name_unique_among_active(self, migrated_engine):
        with Session(migrated_engine) as session:
            user_id = _insert_user(session)
            _insert_companion(session, user_id, "Sage", is_active=False)
            _insert_companion(session, user_id, "Sage")
            session.commit()

            with pytest.raises(IntegrityError) as exc_info:
                _insert_companion(session, user_id, "Sage")
                session.commit()

            session.rollback()
            assert "uix_companions_owner_name_active" in str(exc_info.value)

    def test_one_active_conversation_per_pair(self, migrated_engine):
        with Session(migrated_engine) as session:
            user_id = _insert_user(session)
            companion_id = _insert_companion(session, user_id)
            insert = text("""
                INSERT INTO conversations (id, user_id, companion_id)
                VALUES (:id, :user_id, :companion_id)
            """)
            params = {"user_id": user_id, "companion_id": companion_id}
            session.execute(insert, {"id": uuid4(), **params})
            session.commit()

            with pytest.raises(IntegrityError) as exc_info:
                session.execute(insert, {"id": uuid4(), **params})
                session.commit()

            session.rollback()
            assert "uix_conversations_user_companion_active" in str(exc_info.value)

    def test_empty_message_rejected(self, migrated_engine):
        with Session(migrated_engine) as session:
            with pytest.raises(IntegrityError) as exc_info:
                session.execute(
                    text("""
                        INSERT INTO messages (id, conversation_id, user_id, companion_id, content, is_user)
                        VALUES (:id, :conversation_id, :user_id, :companion_id, '', true)
                    """),
                    {
                        "id": uuid4(),
                        "conversation_id": uuid4(),
                        "user_id": uuid4(),
                        "companion_id": uuid4(),
                    },
                )
                session.commit()

            session.rollback()
            assert "ck_messages_content_length" in str(exc_info.value)
