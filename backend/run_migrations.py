"""Create the database schema for the configured DATABASE_URL."""
from sqlalchemy import inspect

from quizcraft.config import settings
from quizcraft.database import create_db_and_tables, engine


def run():
    """Create every table defined by the SQLModel metadata.

    The function is idempotent: existing tables are left untouched. It is
    intended for local development and quick bootstrapping; schema
    changes to existing tables still need a proper migration tool.
    """
    print("Using database:", settings.DATABASE_URL)
    create_db_and_tables()
    for name in sorted(inspect(engine).get_table_names()):
        print("Table ready:", name)
    print("Schema created.")


if __name__ == '__main__':
    run()
