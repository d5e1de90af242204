"""
Configuration for Query Assistant.

Settings are read once from the environment (and an optional .env file)
and passed explicitly into every component.
"""
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # SQL Server connection
    mssql_user: str = "sa"
    mssql_password: str = ""
    mssql_server: str = "localhost"
    mssql_port: int = 1433
    mssql_database: str = "testdb"
    mssql_odbc_driver: str = "ODBC Driver 18 for SQL Server"
    mssql_encrypt: bool = True
    mssql_trust_server_certificate: bool = True
    database_url: Optional[str] = None
    db_pool_size: int = 10

    # Table the assistant answers questions about
    target_catalog: str = "FINSAT671"
    target_schema: str = "FINSAT671"
    target_table: str = "SPI"

    # LLM
    llm_provider: str = "gemini"
    llm_model: Optional[str] = None
    llm_temperature: float = 0.2
    llm_max_output_tokens: int = 1024
    llm_timeout_seconds: float = 60.0
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.0-flash"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o"
    deepseek_api_key: str = ""
    deepseek_model: str = "deepseek-chat"
    deepseek_base_url: str = "https://api.deepseek.com/v1"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-3-haiku-20240307"
    mistral_api_key: str = ""
    mistral_model: str = "mistral-large-latest"

    # Execution
    query_timeout_seconds: float = 30.0

    # Charts
    chart_title: str = "Query Result"
    chart_color_seed: Optional[int] = None

    # API
    cors_origins: str = "*"
    log_level: str = "INFO"

    @property
    def qualified_table(self) -> str:
        """Three-part table name used in generated SQL."""
        return f"{self.target_catalog}.{self.target_schema}.{self.target_table}"

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def sqlalchemy_url(self):
        if self.database_url:
            return self.database_url
        return URL.create(
            "mssql+aioodbc",
            username=self.mssql_user,
            password=self.mssql_password,
            host=self.mssql_server,
            port=self.mssql_port,
            database=self.mssql_database,
            query={
                "driver": self.mssql_odbc_driver,
                "Encrypt": "yes" if self.mssql_encrypt else "no",
                "TrustServerCertificate": "yes" if self.mssql_trust_server_certificate else "no",
            },
        )
