from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "data/handyhub.db"
    host: str = "0.0.0.0"
    port: int = 8000
    max_message_length: int = 1000
    rate_limit_enabled: bool = True
    rate_limit_register: str = "5/hour"
    rate_limit_create: str = "30/minute"
    rate_limit_transition: str = "60/minute"
    rate_limit_message: str = "60/minute"
    rate_limit_read: str = "120/minute"
    email_api_url: str | None = None
    email_api_key: str | None = None
    email_from: str = "no-reply@handyhub.local"
    sms_api_url: str | None = None
    sms_api_key: str | None = None
    sender_timeout_seconds: float = 5.0
    geocoding_enabled: bool = True
    geocoder_url: str = "https://nominatim.openstreetmap.org/search"
    geocoder_user_agent: str = "handyhub/0.1"
    geocoder_timeout_seconds: float = 5.0
    live_keepalive_seconds: int = 30

    model_config = {"env_prefix": "HANDYHUB_"}


settings = Settings()
