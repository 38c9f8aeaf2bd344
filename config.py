# config.py
import os
BASE_DIR = os.path.abspath(os.path.dirname(__file__))


class Config:
    # --- Database ---
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", f"sqlite:///{os.path.join(BASE_DIR, 'markbook.db')}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # --- Tokens / Sessions ---
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev")  # change later
    AUTH_TOKEN_MAX_AGE = int(os.environ.get("AUTH_TOKEN_MAX_AGE", 7 * 24 * 3600))
    PASSWORD_RESET_MAX_AGE = 3600

    # --- Logging ---
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # --- School constants ---
    LEVELS = ("Level 3", "Level 4", "Level 5")
    TERMS = ("1st Term", "2nd Term", "3rd Term")
    ASSESSMENT_TYPES = ("Formative", "Summative")

    # Status thresholds (%)
    # >= 70 → passing, 60–70 → at risk, < 60 → failing
    STATUS_THRESHOLDS = {"passing": 70.0, "at_risk": 60.0}


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SECRET_KEY = "test-secret"
    LOG_LEVEL = "WARNING"
