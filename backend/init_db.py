# init_db.py (in backend folder)

import logging

from sqlalchemy import inspect

from circle.infra.postgres import Base, engine, init_db
from circle.utils.logger import setup_logger

logger = logging.getLogger("circle.init_db")


def reset_db():
    """Drop and recreate all tables"""
    logger.warning("⚠️  Dropping all tables...")
    Base.metadata.drop_all(bind=engine)
    init_db()

    inspector = inspect(engine)
    for table in inspector.get_table_names():
        columns = ", ".join(f"{c['name']}:{c['type']}" for c in inspector.get_columns(table))
        logger.info("%s(%s)", table, columns)


if __name__ == "__main__":
    setup_logger()
    reset_db()
