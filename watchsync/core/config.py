from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    ENV: str = "development"
    HOST: str = "0.0.0.0"
    PORT: int = 3001
    LOG_LEVEL: str = "INFO"

    FRONTEND_URL: str = "http://localhost:3000"  # comma-separated origins allowed
    SOCKET_PATH: str = "/api/socket"

    SEND_TIMEOUT_SECONDS: float = 5.0
    SHUTDOWN_GRACE_SECONDS: float = 10.0

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.FRONTEND_URL.split(",") if o.strip()]


settings = Settings()
