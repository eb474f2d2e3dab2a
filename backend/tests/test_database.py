from sqlalchemy import create_engine, inspect

from family6.core.database import init_db


def test_init_db_creates_data_dir_and_tables(tmp_path) -> None:
    path = tmp_path / "data" / "nested" / "family6.db"
    engine = create_engine(f"sqlite:///{path}")

    init_db(engine)

    assert path.parent.is_dir()
    assert {"users", "sessions", "chat_history"} <= set(inspect(engine).get_table_names())
    engine.dispose()


def test_init_db_in_memory() -> None:
    engine = create_engine("sqlite://")
    init_db(engine)
    assert "users" in inspect(engine).get_table_names()
    engine.dispose()
