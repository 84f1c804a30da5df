import os
from pathlib import Path


BASE_DIR = Path(__file__).parent
DATA_DIR = BASE_DIR / "data"
FLEET_PATH = DATA_DIR / "fleet.json"
HOSPITALS_PATH = DATA_DIR / "hospitals.json"


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# Simulation clock
TICK_SECONDS = float(os.getenv("SIM_TICK_SECONDS", "1.0"))
AMBULANCE_SPEED = 0.0005  # degrees per tick
SCENE_DWELL_SECONDS = 10.0
HOSPITAL_DWELL_SECONDS = 15.0

# ETA / reporting
AVERAGE_SPEED_KMH = 50.0
HOTSPOT_CELL_DEGREES = 0.05

# Los Angeles, used when the session has no geolocation
FALLBACK_CENTER = (34.0522, -118.2437)

# External providers
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
OSRM_BASE_URL = os.getenv("OSRM_BASE_URL", "https://router.project-osrm.org")
HTTP_TIMEOUT_SECONDS = 10.0

# Random incident feed
AUTO_INCIDENTS = _env_bool("AUTO_INCIDENTS", False)
AUTO_INCIDENT_INTERVAL_SECONDS = 5.0
AUTO_INCIDENT_PROBABILITY = 0.3

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Start the tick loop with the web app
AUTO_START = _env_bool("SIM_AUTOSTART", True)
