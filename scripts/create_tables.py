"""Create the tool registry tables using SQLModel."""
import argparse
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlmodel import SQLModel

from toolpool.config import settings
from toolpool.infra.db.connection import create_db_engine

# Import models to ensure they're registered with SQLModel
from toolpool.infra.db.models import ToolManifestRecord  # noqa: F401


def create_tables(database_url: str, echo: bool = False) -> None:
    """Create all registry tables."""
    print(f"Creating tables in database: {database_url}")

    engine = create_db_engine(database_url, echo=echo)
    SQLModel.metadata.create_all(engine)

    print("\n✅ All tables created successfully!")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create the tool_manifests table")
    parser.add_argument(
        "--database-url",
        default=settings.database_url,
        help="Target database (default: DATABASE_URL)",
    )
    parser.add_argument("--echo", action="store_true", help="Echo SQL statements")
    args = parser.parse_args()

    if not args.database_url:
        parser.error("no database configured: pass --database-url or set DATABASE_URL")

    create_tables(args.database_url, echo=args.echo)
