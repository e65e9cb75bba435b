from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Exa (scored search)
    exa_api_key: str = ""
    exa_base_url: str = "https://api.exa.ai"

    # Perplexity (unscored search, up to 5 queries per call)
    perplexity_api_key: str = ""
    perplexity_base_url: str = "https://api.perplexity.ai"

    search_timeout_seconds: float = Field(default=30.0, gt=0)

    # Search orchestration
    search_default_num_results: int = Field(default=15, ge=1)
    search_over_fetch_multiplier: float = Field(default=2.0, ge=1.0)
    search_max_sources_per_domain: int = Field(default=2, ge=1)
    search_title_similarity_threshold: float = Field(default=0.85, gt=0, le=1)
    targeted_max_results_per_query: int = Field(default=4, ge=1)

    # Content fetching
    fetch_max_concurrent: int = Field(default=3, ge=1)
    fetch_rate_limit: int = Field(default=5, ge=1)  # starts per interval
    fetch_rate_interval_seconds: float = Field(default=1.0, gt=0)
    fetch_retries: int = Field(default=2, ge=0)
    fetch_retry_min_timeout_seconds: float = Field(default=0.1, ge=0)
    fetch_retry_max_timeout_seconds: float = Field(default=2.0, ge=0)
    fetch_retry_backoff_factor: float = Field(default=5.0, ge=1.0)
    fetch_max_words: int = Field(default=500, ge=1)
    fetch_timeout_ms: int = Field(default=8000, ge=100)
    fetch_user_agent: str = "Mozilla/5.0 (compatible; SourceFinderBot/1.0)"

    # App
    app_log_level: str = "INFO"
    noisy_log_level: str = "WARNING"
    log_dir: str = "logs"
    log_to_file: bool = True

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


settings = Settings()
