from __future__ import annotations
import os
from pathlib import Path

# Historical daily catalog: five 90-minute slots with breaks between them.
DEFAULT_TIMETABLE_SLOTS = [
    ("09:00", "10:30"),
    ("10:45", "12:15"),
    ("13:00", "14:30"),
    ("14:45", "16:15"),
    ("16:30", "18:00"),
]

class BaseConfig:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")
    BASE_DIR = Path(__file__).resolve().parent
    # SQLite file in project directory
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", f"sqlite:///{BASE_DIR / 'app.db'}")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JSON_SORT_KEYS = False
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    TIMETABLE_SLOTS = DEFAULT_TIMETABLE_SLOTS
    TIMETABLE_DEFAULT_DAYS = ["monday", "wednesday", "friday"]
    TIMETABLE_MAX_OPTIONS = 5

class DevConfig(BaseConfig):
    DEBUG = True
    LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")
    SEED_DEMO_DATA = True

class TestConfig(BaseConfig):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SEED_DEMO_DATA = False

class ProdConfig(BaseConfig):
    DEBUG = False
    SEED_DEMO_DATA = False

config_map = {
    "dev": DevConfig,
    "test": TestConfig,
    "prod": ProdConfig,
    "default": DevConfig,
}
