"""Database initialization and default scoring config seeding."""
import logging
from pathlib import Path
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session
from app.db.database import engine, SessionLocal, Base
from app.db.models import ScoringConfig
from app.services.metric_weights import METRIC_TABLE, load_config, metric_for_db_name, to_persisted_rows

logger = logging.getLogger(__name__)


def default_scoring_rows():
    """Default scoring_config rows, one per metric, as column dicts."""
    rows = []
    for row in to_persisted_rows(load_config([])):
        metric_id = metric_for_db_name(row.metric_name)
        rows.append({
            "metric_name": row.metric_name,
            "weight": row.weight,
            "min_value": row.min_value,
            "max_value": row.max_value,
            "description": METRIC_TABLE[metric_id].label,
        })
    return rows


def seed_scoring_config(db: Session) -> None:
    """Seed the scoring_config table with default metric rows."""
    existing_count = db.query(ScoringConfig).count()
    if existing_count > 0:
        logger.info(f"scoring_config already contains {existing_count} rows. Skipping seed.")
        return

    rows = default_scoring_rows()
    for row_data in rows:
        db.add(ScoringConfig(**row_data))

    db.commit()
    logger.info(f"Seeded {len(rows)} default scoring metrics.")


def ensure_sqlite_directory(database_url: str) -> None:
    """Create the parent directory of a file-based SQLite database."""
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite" or not url.database or url.database == ":memory:":
        return
    Path(url.database).parent.mkdir(parents=True, exist_ok=True)


def init_db() -> None:
    """
    Initialize database: create tables and seed default data.

    Safe to call multiple times - all operations are idempotent.
    """
    logger.info("Initializing database...")

    ensure_sqlite_directory(str(engine.url))
    Base.metadata.create_all(bind=engine)
    logger.info("Tables created/verified successfully.")

    db = SessionLocal()
    try:
        seed_scoring_config(db)
        logger.info("Database initialization complete.")
    except Exception as e:
        db.rollback()
        logger.error(f"Error during database initialization: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    # Set up basic logging for standalone execution
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    init_db()
