from datetime import datetime, timezone
from pathlib import Path

import sqlalchemy as sa
from alembic import command
from alembic.config import Config

from doinggreat.db.models import Moment
from doinggreat.db.session import make_engine, make_session_factory
from doinggreat.repositories.moment_repository import SqlMomentRepository

ROOT = Path(__file__).resolve().parent.parent


def alembic_config(url: str) -> Config:
    cfg = Config()
    cfg.set_main_option("script_location", str(ROOT / "alembic"))
    cfg.set_main_option("sqlalchemy.url", url)
    return cfg


def columns(engine, table):
    return {c["name"] for c in sa.inspect(engine).get_columns(table)}


def test_upgrade_head_matches_models(tmp_path):
    url = f"sqlite:///{tmp_path / 'moments.db'}"
    command.upgrade(alembic_config(url), "head")

    engine = make_engine(url)
    assert {"moments", "app_state"} <= set(sa.inspect(engine).get_table_names())
    assert columns(engine, "moments") == {c.name for c in Moment.__table__.columns}

    # The migrated schema is usable by the repository as-is
    repo = SqlMomentRepository(make_session_factory(engine))
    now = datetime.now(timezone.utc)
    repo.save(Moment(text="migrated", submitted_at=now, happened_at=now, timezone="UTC"))
    assert [m.text for m in repo.fetch_all()] == ["migrated"]
    engine.dispose()


def test_downgrade_drops_enriched_praise_column(tmp_path):
    url = f"sqlite:///{tmp_path / 'moments.db'}"
    cfg = alembic_config(url)
    command.upgrade(cfg, "head")
    command.downgrade(cfg, "001")

    engine = make_engine(url)
    assert "praise_enriched_json" not in columns(engine, "moments")
    assert "tags_json" in columns(engine, "moments")
    engine.dispose()
