from pathlib import Path

from school_ledger.database.bootstrap import iter_sql_statements
from school_ledger.database.connection import DBConfig


def test_split_ignores_semicolons_in_quotes_and_comments():
    sql = """
    -- comment; with semicolon
    CREATE TABLE a (x VARCHAR(10) DEFAULT 'a;b');
    INSERT INTO a VALUES ('it\\'s; fine');
    SELECT 1
    """

    statements = list(iter_sql_statements(sql))

    assert len(statements) == 3
    assert statements[0].endswith("DEFAULT 'a;b')")
    assert statements[2] == "SELECT 1"


def test_project_schema_splits_into_tables():
    schema = Path(__file__).resolve().parents[2] / "database" / "schema.sql"

    statements = list(iter_sql_statements(schema.read_text(encoding="utf-8")))
    tables = [s for s in statements if s.upper().startswith("CREATE TABLE")]

    assert len(tables) == 5


def test_db_config_defaults():
    config = DBConfig.from_dict({"host": "db", "port": "3307"})

    assert (config.host, config.port, config.database, config.connect_timeout) == ("db", 3307, "school_ledger", 10)
