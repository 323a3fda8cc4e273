from contextlib import contextmanager
from pathlib import Path

import psycopg
from psycopg.rows import dict_row

SCHEMA_PATH = Path(__file__).with_name("schema.sql")


@contextmanager
def get_conn(database_url: str):
    conn = psycopg.connect(database_url, row_factory=dict_row)
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def init_schema(database_url: str) -> None:
    with get_conn(database_url) as conn:
        conn.execute(SCHEMA_PATH.read_text(encoding="utf-8"))
