"""Tests for unit_of_work error translation and atomicity."""

from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError, ProgrammingError

from raid_api.db.models import User
from raid_api.db.session import constraint_violated, unit_of_work
from raid_api.errors import ConflictError, InternalError, StorageError


def test_commits_on_success():
    db = MagicMock()
    with unit_of_work(db):
        pass

    db.commit.assert_called_once()
    db.rollback.assert_not_called()


def test_domain_error_rolls_back_unchanged():
    db = MagicMock()
    with pytest.raises(ConflictError):
        with unit_of_work(db):
            raise ConflictError("raid_full", "full")

    db.rollback.assert_called_once()
    db.commit.assert_not_called()


def test_operational_error_becomes_storage_error():
    db = MagicMock()
    db.commit.side_effect = OperationalError("COMMIT", {}, Exception("database is locked"))

    with pytest.raises(StorageError) as exc_info:
        with unit_of_work(db):
            pass

    assert exc_info.value.code == "storage_unavailable"
    db.rollback.assert_called_once()


def test_other_sqlalchemy_error_becomes_internal_error():
    db = MagicMock()
    with pytest.raises(InternalError) as exc_info:
        with unit_of_work(db):
            raise ProgrammingError("SELECT", {}, Exception("syntax error near secret_column"))

    assert "secret_column" not in exc_info.value.message


def test_rollback_discards_partial_writes(db_session):
    with pytest.raises(ConflictError):
        with unit_of_work(db_session):
            db_session.add(User(external_id="ghost", display_name="Ghost"))
            db_session.flush()
            raise ConflictError("raid_full", "abort after write")

    assert db_session.query(User).filter_by(external_id="ghost").count() == 0


def test_constraint_violated_matches_driver_message():
    error = IntegrityError(
        "INSERT", {}, Exception("UNIQUE constraint failed: raid_signups.raid_id, raid_signups.character_id")
    )
    assert constraint_violated(error, "uq_raid_signups_raid_character", "raid_signups.raid_id")
    assert not constraint_violated(error, "foreign key")
