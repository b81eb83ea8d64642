"""
Settings for storedproc (env / .env driven).

The default datasource is described by DB_* keys; extra named datasources
come from DB_CONNECTIONS as a JSON object keyed by connection name.
"""

from typing import Annotated, Any

from pydantic import BeforeValidator, Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


def parse_list(v: Any) -> list[str] | str:
    if isinstance(v, str) and not v.startswith("["):
        return [i.strip() for i in v.split(",") if i.strip()]
    if isinstance(v, list | str):
        return v
    raise ValueError(v)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )

    # Default connection
    DB_CONNECTION: str = "default"
    DB_DRIVER: str = "mysql"
    DB_HOST: str = "localhost"
    DB_PORT: int | None = None
    DB_DATABASE: str = "app"
    DB_USERNAME: str = "app"
    DB_PASSWORD: str = ""

    # Named connections: {"reporting": {"product_type": "sqlsrv", "host": ..., ...}}
    DB_CONNECTIONS: dict[str, dict[str, Any]] = Field(default_factory=dict)

    EXTERNAL_DB_CONNECT_TIMEOUT: int = 10
    EXTERNAL_DB_STATEMENT_TIMEOUT: float | None = None

    # Request fields never turned into named placeholders (anti-forgery token)
    STORED_PROC_EXCLUDED_FIELDS: Annotated[
        list[str] | str, BeforeValidator(parse_list)
    ] = ["_token"]

    @computed_field  # type: ignore[prop-decorator]
    @property
    def default_datasource(self) -> dict[str, Any]:
        return {
            "product_type": self.DB_DRIVER,
            "host": self.DB_HOST,
            "port": self.DB_PORT,
            "database": self.DB_DATABASE,
            "username": self.DB_USERNAME,
            "password": self.DB_PASSWORD,
        }


settings = Settings()  # type: ignore
