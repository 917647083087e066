import os
from dotenv import load_dotenv

load_dotenv()

APP_SECRET_KEY = os.getenv("APP_SECRET_KEY", "dev-secret")
API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:8000/api/v1").rstrip("/")
API_TIMEOUT = float(os.getenv("API_TIMEOUT", "30"))
DEFAULT_LANDING_URL = os.getenv("DEFAULT_LANDING_URL", "/dashboard")
OAUTH_RESUME_DELAY = int(os.getenv("OAUTH_RESUME_DELAY", "3"))
MESSAGE_PAGE_SIZE = int(os.getenv("MESSAGE_PAGE_SIZE", "100"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
ENV = os.getenv("ENV", "local")
METRICS_WAIT = float(os.getenv("METRICS_WAIT", "2"))
