import os

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()


class Settings(BaseModel):
    mongodb_uri: str = os.getenv("MONGODB_URI", "")
    database_name: str = os.getenv("DATABASE_NAME", "tripplanner")
    google_maps_api_key: str = os.getenv("GOOGLE_MAPS_API_KEY", "")
    openweather_api_key: str = os.getenv("OPENWEATHER_API_KEY", "")
    aisuite_model: str = os.getenv("AISUITE_MODEL", "openai:gpt-4o-mini")
    allowed_origins: str = os.getenv("ALLOWED_ORIGINS", "")
    site_url: str = os.getenv("SITE_URL", "http://localhost:3000")
    rate_limit_max_requests: int = int(os.getenv("RATE_LIMIT_MAX_REQUESTS", "100"))
    rate_limit_window_seconds: int = int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "60"))


def get_settings() -> Settings:
    return Settings()
