from pathlib import Path

from pydantic_settings import BaseSettings

DATA_DIR = Path(__file__).resolve().parent / "data"


class Settings(BaseSettings):
    debug: bool = False
    log_level: str = "INFO"

    # Shared key-value store (dedup + response cache). Empty -> local only.
    redis_url: str = ""
    redis_socket_timeout_seconds: float = 0.3

    dedup_ttl_seconds: int = 300
    dedup_local_capacity: int = 500
    cache_ttl_seconds: int = 600
    cache_local_capacity: int = 1000

    debounce_seconds: float = 1.0

    history_max_turns: int = 10
    conversation_stale_seconds: int = 300
    conversation_sweep_seconds: float = 60.0

    reminder_threshold_minutes: float = 1.0
    closure_threshold_minutes: float = 2.0
    activity_sweep_seconds: float = 3.0

    worker_max_threads: int = 16
    worker_max_pending: int = 64
    worker_submit_timeout_seconds: float = 2.0
    fanout_max_threads: int = 8

    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    llm_timeout_seconds: float = 30.0
    llm_max_retries: int = 2
    llm_retry_backoff_seconds: float = 0.5
    llm_breaker_failures: int = 5
    llm_breaker_recovery_seconds: float = 60.0

    slack_bot_token: str = ""
    slack_max_message_chars: int = 3000

    products_file: str = str(DATA_DIR / "products.yaml")
    mock_api_delay_ms: int = 50

    admin_token: str = ""
    alert_webhook_url: str = ""

    background_tasks_enabled: bool = True

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
