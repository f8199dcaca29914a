import os
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    return float(raw) if raw not in (None, "") else default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    return int(raw) if raw not in (None, "") else default


class Settings:
    APP_VERSION: str = "1.0.0"
    MODEL_VERSION: str = "lr-l2-v1"
    SCHEMA_VERSION: str = "features-v1"

    # --- CONFIG ---
    ENV = os.getenv("SCHOLARCAST_ENV", "production")
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./scholarcast.db")
    SQL_ECHO = os.getenv("SQL_ECHO", "0") == "1"

    # --- TRAINING DEFAULTS ---
    LEARNING_RATE = _env_float("LEARNING_RATE", 0.1)
    EPOCHS = _env_int("EPOCHS", 1000)
    L2_COEFFICIENT = _env_float("L2_COEFFICIENT", 0.0001)
    TRAIN_TEST_SPLIT = _env_float("TRAIN_TEST_SPLIT", 0.8)
    MIN_SAMPLES_GLOBAL = _env_int("MIN_SAMPLES_GLOBAL", 50)
    MIN_SAMPLES_PER_SCHOLARSHIP = _env_int("MIN_SAMPLES_PER_SCHOLARSHIP", 30)
    RANDOM_SEED = _env_int("RANDOM_SEED", 42)
    CONVERGENCE_EPSILON = _env_float("CONVERGENCE_EPSILON", 1e-7)

    # --- CACHE ---
    MODEL_CACHE_TTL_SECONDS = _env_int("MODEL_CACHE_TTL_SECONDS", 300)

    # --- AUTO TRAINING ---
    AUTO_TRAINING_ENABLED = os.getenv("AUTO_TRAINING_ENABLED", "1") == "1"
    GLOBAL_RETRAIN_INTERVAL = _env_int("GLOBAL_RETRAIN_INTERVAL", 10)
    AUTO_TRAINING_LOG_SIZE = _env_int("AUTO_TRAINING_LOG_SIZE", 100)


@lru_cache
def get_settings():
    return Settings()
