import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()


class Settings(BaseModel):
    # Transport Configuration
    api_base_url: str = Field(default="http://localhost:3000/api", alias="API_BASE_URL")

    # Cache Configuration
    cache_max_size: int = Field(default=500, alias="CACHE_MAX_SIZE")

    # Batch Configuration
    batch_max_concurrency: int = Field(default=10, ge=1, alias="BATCH_MAX_CONCURRENCY")

    # Adaptive timeouts never go below this many seconds
    adaptive_timeout_floor: float = Field(default=1.0, alias="ADAPTIVE_TIMEOUT_FLOOR")

    debug: bool = Field(default=False, alias="ORCHESTRATOR_DEBUG")


global_settings = Settings.model_validate(dict(os.environ))
