import sys
from pathlib import Path

from alembic.config import Config
from alembic.script import ScriptDirectory

BACKEND_DIR = Path(__file__).resolve().parents[1]


def load_script_directory(backend_dir: Path = BACKEND_DIR) -> ScriptDirectory:
    cfg = Config(str(backend_dir / "alembic.ini"))
    cfg.set_main_option("script_location", str(backend_dir / "alembic"))
    return ScriptDirectory.from_config(cfg)


def migration_chain(script: ScriptDirectory) -> list[str]:
    """Revision ids from base to head; raises if history branches."""
    heads = script.get_heads()
    if len(heads) != 1:
        raise ValueError(f"expected one head, found {len(heads)}: {heads}")
    chain = [rev.revision for rev in script.walk_revisions("base", heads[0])]
    return list(reversed(chain))


def main() -> int:
    try:
        chain = migration_chain(load_script_directory())
    except ValueError as exc:
        print(f"[FAIL] {exc}", file=sys.stderr)
        return 1

    print(f"[OK] Alembic single head: {chain[-1]} ({len(chain)} revisions)")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
