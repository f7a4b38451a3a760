import logging

import uvicorn

from api.routes.applications import app
from config import Config
from db.database import Base, engine
import db.models  # noqa: F401  registers tables on Base.metadata

logging.basicConfig(level=Config.LOG_LEVEL)
logger = logging.getLogger(__name__)


def initialize_database():
    """
    Creates all tables defined by models that inherit from Base.
    """
    logger.info("Creating database tables...")
    # This command checks all classes inheriting from Base and creates
    # the corresponding tables if they don't already exist.
    Base.metadata.create_all(bind=engine)
    logger.info("Tables created successfully.")


def main():
    initialize_database()
    uvicorn.run(app, host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()
