from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Настройки платёжного сервиса (читаются из окружения и .env)."""

    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_USER: str = "user_payment"
    DB_PASSWORD: str = "pass_payment"
    DB_NAME: str = "db_payment"
    DATABASE_ECHO: bool = False

    @property
    def DATABASE_URL(self) -> str:
        return (
            f"postgresql+asyncpg://{self.DB_USER}:"
            f"{self.DB_PASSWORD}@{self.DB_HOST}:"
            f"{self.DB_PORT}/{self.DB_NAME}"
        )

    PROJECT_NAME: str = "Payment Service"
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

    model_config = SettingsConfigDict(env_file=".env")


settings = Settings()
