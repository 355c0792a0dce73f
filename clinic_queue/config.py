"""
Configuration for the application
"""
from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings
    """

    database_url: str = "postgresql+asyncpg://localhost:5432/clinic_queue"
    redis_url: str = ""  # Empty disables change notifications (polling only)
    frontend_url: str = "http://localhost:3000"
    log_level: str = "INFO"

    # Auth0 configuration
    auth_disabled: bool = False
    auth0_domain: str = ""
    auth0_audience: str = ""

    # Queue behaviour
    clinic_timezone: str = "America/Sao_Paulo"
    queue_poll_interval_seconds: float = 10.0
    display_history_limit: int = 6
    queue_change_channel: str = "clinic_queue:visits"

    # Placeholder billing entry written when an attendance session closes
    billing_description: str = "Atendimento por prestador"
    billing_payment_method: str = "a combinar"
    billing_cost_center: str = "Variavel"
    billing_responsible: str = "Gama Medicina"
    billing_category: str = "Medicina"

    class Config:
        """
        Configuration for the application settings
        """
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

@lru_cache()
def get_settings() -> Settings:
    """
    Get the application settings with caching.

    Returns:
        Settings: The application configuration settings.
    """
    return Settings()
