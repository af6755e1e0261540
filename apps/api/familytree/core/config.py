from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_env: str = "dev"
    auth_mode: str = "forwardauth"  # forwardauth | dev
    root_path: str = ""
    log_level: str = "INFO"

    postgres_db: str = "family_tree"
    postgres_user: str = "family_tree_user"
    postgres_password: str = "family_tree_pass"
    postgres_host: str = "db"
    postgres_port: int = 5432
    # Full URL wins over the postgres_* parts when set (e.g. sqlite for local runs).
    database_url_override: str | None = None

    default_page_size: int = 10
    max_page_size: int = 100

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def database_url(self) -> str:
        if self.database_url_override:
            return self.database_url_override
        return (
            f"postgresql+psycopg2://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )


settings = Settings()
