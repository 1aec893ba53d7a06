import os
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from sitesearch.utils.db_utils import DEFAULT_DATABASE_URL
from sitesearch.utils.env_loader import load_environment


DEFAULT_USER_AGENT = "SiteSearchBot/1.0"
DEFAULT_REFERRER = "https://www.google.com"
CONFIG_PATH_VARIABLE = "SITESEARCH_CONFIG"


class SiteConfig(BaseModel):
    name: str
    url: str

    @field_validator("url")
    @classmethod
    def _root_url(cls, value: str) -> str:
        value = value.strip()
        if not value.lower().startswith(("http://", "https://")):
            raise ValueError(f"site url must be http(s): {value!r}")
        if not value.endswith("/"):
            value += "/"
        return value


class Config(BaseSettings):
    database_url: str = DEFAULT_DATABASE_URL

    # crawler
    crawler_user_agent: str = DEFAULT_USER_AGENT
    crawler_referrer: str = DEFAULT_REFERRER
    min_delay_ms: int = 500
    max_delay_ms: int = 1500
    request_timeout: float = 10.0
    crawler_workers: int = 8
    sites: List[SiteConfig] = []

    # search
    max_lemma_share: float = 0.5
    snippet_length: int = 200

    # api
    api_host: str = "0.0.0.0"
    api_port: int = 8080

    log_level: str = "INFO"
    log_path: Optional[str] = "logs/sitesearch.log"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @field_validator("max_lemma_share")
    @classmethod
    def _share_is_fraction(cls, value: float) -> float:
        if not 0 <= value <= 1:
            raise ValueError("max_lemma_share must be between 0 and 1")
        return value

    @field_validator("min_delay_ms", "max_delay_ms", "snippet_length")
    @classmethod
    def _non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("value must not be negative")
        return value

    @field_validator("crawler_workers")
    @classmethod
    def _positive_workers(cls, value: int) -> int:
        if value < 1:
            raise ValueError("crawler_workers must be at least 1")
        return value

    @model_validator(mode="after")
    def _delay_range(self) -> "Config":
        if self.min_delay_ms > self.max_delay_ms:
            raise ValueError("min_delay_ms must not exceed max_delay_ms")
        return self


def _config_path() -> str:
    explicit = os.getenv(CONFIG_PATH_VARIABLE)
    if explicit:
        return explicit
    return os.path.join(os.path.dirname(__file__), "../config/config.yaml")


def _load_yaml_config() -> Dict[str, Any]:
    config_path = _config_path()
    if not os.path.exists(config_path):
        return {}

    with open(config_path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_config() -> Config:
    load_environment()
    file_data = _load_yaml_config()

    crawler_settings: Dict[str, Any] = file_data.get("crawler") or {}
    search_settings: Dict[str, Any] = file_data.get("search") or {}
    api_settings: Dict[str, Any] = file_data.get("api") or {}

    values: Dict[str, Any] = {
        k: v for k, v in file_data.items() if k not in ("crawler", "search", "api")
    }

    values.update(
        {
            "crawler_user_agent": crawler_settings.get("user_agent"),
            "crawler_referrer": crawler_settings.get("referrer"),
            "min_delay_ms": crawler_settings.get("min_delay_ms"),
            "max_delay_ms": crawler_settings.get("max_delay_ms"),
            "request_timeout": crawler_settings.get("request_timeout"),
            "crawler_workers": crawler_settings.get("workers"),
            "max_lemma_share": search_settings.get("max_lemma_share"),
            "snippet_length": search_settings.get("snippet_length"),
            "api_host": api_settings.get("host"),
            "api_port": api_settings.get("port"),
        }
    )

    # environment wins over the config file
    env_overrides = {
        "database_url": os.getenv("DATABASE_URL"),
        "crawler_user_agent": os.getenv("CRAWLER_USER_AGENT"),
        "crawler_referrer": os.getenv("CRAWLER_REFERRER"),
        "crawler_workers": os.getenv("CRAWLER_WORKERS"),
        "api_host": os.getenv("API_HOST"),
        "api_port": os.getenv("API_PORT"),
        "log_level": os.getenv("LOG_LEVEL"),
    }
    values.update({k: v for k, v in env_overrides.items() if v})

    return Config(**{k: v for k, v in values.items() if v is not None})


def get_crawler_user_agent() -> str:
    """Return the configured crawler user-agent string."""
    config = load_config()
    return config.crawler_user_agent
