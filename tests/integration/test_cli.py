"""
Operator CLI tests against a temporary data directory.
"""

from pathlib import Path

import pytest

from src.adapters.sqlite.repos import SQLiteUserProfileRepo
from src.api.auth_utils import decode_access_token, user_id_from_token
from src.app_shell.cli import main

ROOT = Path(__file__).resolve().parents[2]


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    monkeypatch.chdir(ROOT)
    monkeypatch.setenv("LMS_DATA_DIR", str(tmp_path))
    monkeypatch.delenv("LMS_RULES_PATH", raising=False)
    return tmp_path


def test_seed_creates_demo_data(data_dir, capsys):
    main(["seed"])

    assert "Seeded 3 courses." in capsys.readouterr().out
    student = SQLiteUserProfileRepo(str(data_dir / "lms.db")).get_user_profile("user1")
    assert student.is_enrolled("javascript-es6")
    assert student.owns_unit("javascript-es6-ep2")


def test_seed_twice_is_harmless(data_dir, capsys):
    main(["seed"])
    main(["seed"])
    assert "Applied 0 migrations" in capsys.readouterr().out


def test_set_role(data_dir, capsys):
    main(["seed"])
    main(["set-role", "user2", "admin"])

    assert "User user2 is now 'admin'." in capsys.readouterr().out


def test_set_role_unknown_user(data_dir):
    main(["migrate"])
    with pytest.raises(SystemExit) as exc:
        main(["set-role", "ghost", "admin"])
    assert exc.value.code == 1


def test_batch_commands_on_empty_ledger(data_dir, capsys):
    main(["migrate"])
    main(["expire_intents"])
    main(["reconcile", "--batch-size", "10"])
    main(["payments", "--status", "pending"])

    out = capsys.readouterr().out
    assert "Expired 0, completed 0, unapplied 0." in out
    assert "Checked 0, repaired 0, still failing 0." in out
    assert "0 records." in out


def test_token(data_dir, capsys):
    main(["token", "user1"])

    token = capsys.readouterr().out.strip()
    assert decode_access_token(token)["iss"] == "lumora-lms"
    assert user_id_from_token(token) == "user1"
