import logging
import os
import sys

# Add root to pythonpath
sys.path.append(os.getcwd())

from src.adapters.sqlite.migrator import SQLiteMigrator
from src.adapters.sqlite.repos import SQLiteCourseCatalog, SQLiteUserProfileRepo
from src.app_shell.seed import seed_demo_data


def seed() -> None:
    data_dir = os.environ.get("LMS_DATA_DIR", "./data")
    os.makedirs(data_dir, exist_ok=True)

    db_path = f"{data_dir}/lms.db"
    print(f"Seeding to {db_path}")

    SQLiteMigrator(db_path, "migrations").run_migrations()
    count = seed_demo_data(SQLiteCourseCatalog(db_path), SQLiteUserProfileRepo(db_path))
    print(f"Seeded {count} courses")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    seed()
