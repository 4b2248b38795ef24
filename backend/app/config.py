"""
Runtime configuration read from environment variables.

Only PRESSMASTER_API_KEY changes behaviour in an interesting way: when it is
set the quote service talks to the real Pressmaster API, otherwise it answers
with stub quotes.
"""
import os
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from typing import Optional

from pydantic import BaseModel

from .errors import ConfigurationError

DEFAULT_PRESSMASTER_URL = "https://api.pressmaster.com/v1/quotes"


class Settings(BaseModel):
    database_url: str = 'sqlite:///./backend.db'
    pressmaster_api_key: Optional[str] = None
    pressmaster_api_url: str = DEFAULT_PRESSMASTER_URL
    pressmaster_timeout: float = 10.0
    check_drop_threshold: Decimal = Decimal('777')
    feed_keepalive: float = 15.0
    log_level: str = 'INFO'
    log_json: bool = False

    @property
    def pressmaster_mode(self) -> str:
        return 'live' if self.pressmaster_api_key else 'stub'

    @classmethod
    def from_env(cls) -> "Settings":
        try:
            return cls(
                database_url=os.getenv('DATABASE_URL', 'sqlite:///./backend.db'),
                # an empty value counts as "not configured"
                pressmaster_api_key=os.getenv('PRESSMASTER_API_KEY') or None,
                pressmaster_api_url=os.getenv('PRESSMASTER_API_URL', DEFAULT_PRESSMASTER_URL),
                pressmaster_timeout=float(os.getenv('PRESSMASTER_TIMEOUT', '10')),
                check_drop_threshold=Decimal(os.getenv('CHECK_DROP_THRESHOLD', '777')),
                feed_keepalive=float(os.getenv('FEED_KEEPALIVE', '15')),
                log_level=os.getenv('LOG_LEVEL', 'INFO').upper(),
                log_json=os.getenv('LOG_JSON', 'false').lower() in ('1', 'true', 'yes'),
            )
        except (ValueError, InvalidOperation) as e:
            raise ConfigurationError(f"Invalid configuration value: {e}")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
