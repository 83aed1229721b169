import json
from pathlib import Path

CONFIG_DIR = Path.home() / ".config" / "extrato"
SETTINGS_PATH = CONFIG_DIR / "settings.json"

DEFAULT_DATA_DIR = Path.home() / "Documents" / "extrato"

DEFAULTS = {
    "data_dir": str(DEFAULT_DATA_DIR),
    "default_budget": "Pessoal",
    "log_level": "WARNING",
    # Duplicate detection thresholds, uncalibrated.
    "duplicate_window_days": 15,
    "duplicate_fuzzy_days": 3,
    "duplicate_similarity": 0.8,
}


def load_settings() -> dict:
    if SETTINGS_PATH.exists():
        with open(SETTINGS_PATH) as f:
            saved = json.loads(f.read())
        return {**DEFAULTS, **saved}
    return dict(DEFAULTS)


def save_settings(settings: dict) -> None:
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    with open(SETTINGS_PATH, "w") as f:
        f.write(json.dumps(settings, indent=2) + "\n")


def get_data_dir() -> Path:
    return Path(load_settings()["data_dir"])


def duplicate_settings(settings: dict | None = None) -> dict:
    """Keyword arguments for DuplicateDetector taken from settings."""
    settings = settings if settings is not None else load_settings()
    return {
        "window_days": int(settings["duplicate_window_days"]),
        "fuzzy_days": int(settings["duplicate_fuzzy_days"]),
        "threshold": float(settings["duplicate_similarity"]),
    }
