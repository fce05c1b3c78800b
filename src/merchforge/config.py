from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "postgresql+asyncpg://merchforge:devpassword@db:5432/merchforge"
    REDIS_URL: str = "redis://redis:6379/0"

    IMAGE_PROVIDER: str = "mock"
    IMAGE_PROVIDER_URL: str = "http://image-provider:8080"
    IMAGE_PROVIDER_TIMEOUT: float = 60.0

    JWT_SECRET_KEY: str = ""

    FREE_MONTHLY_CREDITS: int = 50
    DEFAULT_PRODUCT_PRICE_CENTS: int = 3900

    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
