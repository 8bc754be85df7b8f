import importlib.util
from pathlib import Path

from sqlalchemy import select

from parcelgis.auth.models import User

SCRIPTS_DIR = Path(__file__).resolve().parents[1] / "scripts"


def _load(name):
    spec = importlib.util.spec_from_file_location(name, SCRIPTS_DIR / f"{name}.py")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_migrations_form_a_single_linear_chain():
    check = _load("check_alembic_single_head")
    chain = check.migration_chain(check.load_script_directory())
    assert chain == ["3b8e1f0c2a71", "7c2d9e4f5b16", "c5a0f7d3e982"]
    assert check.main() == 0


def test_set_user_role_promotes_by_username(register, db):
    register("Alice")
    set_role = _load("set_user_role")

    user = set_role.set_user_role(db, "alice", "admin")
    assert user.role == "admin"
    assert db.execute(select(User.user_role)).scalar_one() == "admin"
    assert set_role.set_user_role(db, "nobody", "admin") is None


def test_set_user_role_main_reports_outcome(register, session_factory, db, monkeypatch, capsys):
    register("Alice")
    set_role = _load("set_user_role")
    monkeypatch.setattr(set_role, "SessionLocal", session_factory)

    assert set_role.main(["alice", "admin"]) == 0
    assert capsys.readouterr().out.strip() == "[OK] Alice is now admin"
    assert db.execute(select(User.user_role)).scalar_one() == "admin"

    assert set_role.main(["nobody", "user"]) == 1
    assert "No user named 'nobody'" in capsys.readouterr().err
