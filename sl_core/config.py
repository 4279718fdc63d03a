"""
StockLedger Configuration Management
遵循约束：环境变量前缀 SL__
"""
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, validator
from functools import lru_cache


class Settings(BaseSettings):
    """全局配置类"""
    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="SL__",
        case_sensitive=False
    )

    # Database
    # 设置 db_url 时直接使用（桌面部署默认 SQLite），否则按 PostgreSQL 参数拼接
    db_url: Optional[str] = Field(default="sqlite+aiosqlite:///./ledger.db")
    db_host: str = Field(default="localhost")
    db_port: int = Field(default=5432)
    db_name: str = Field(default="stockledger")
    db_user: str = Field(default="stockledger")
    db_password: str = Field(default="")
    db_pool_size: int = Field(default=10)
    db_max_overflow: int = Field(default=20)

    # API Settings
    api_host: str = Field(default="127.0.0.1")
    api_port: int = Field(default=3001)
    api_prefix: str = Field(default="/api")
    api_title: str = Field(default="StockLedger API")
    api_version: str = Field(default="1.0.0")
    api_debug: bool = Field(default=False)
    cors_origins: list[str] = Field(default=["http://localhost:3000", "http://127.0.0.1:3000"])

    # Monitoring
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")  # json or text
    metrics_enabled: bool = Field(default=True)
    metrics_prefix: str = Field(default="sl")

    # 库存列表分页
    list_default_limit: int = Field(default=50)
    list_max_limit: int = Field(default=500)

    @validator("api_prefix")
    def validate_api_prefix(cls, v):
        """确保 API 前缀符合规范"""
        if not v.startswith("/api"):
            raise ValueError("API prefix must start with /api")
        return v.rstrip("/")

    @validator("metrics_prefix")
    def validate_metrics_prefix(cls, v):
        """确保指标前缀符合规范"""
        if not v.startswith("sl"):
            raise ValueError("Metrics prefix must start with 'sl'")
        return v

    @property
    def database_url(self) -> str:
        """构建数据库连接字符串"""
        if self.db_url:
            return self.db_url
        return f"postgresql+asyncpg://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"

    @property
    def sync_database_url(self) -> str:
        """构建同步数据库连接字符串（用于 Alembic）"""
        if self.db_url:
            return self.db_url.replace("+aiosqlite", "").replace("+asyncpg", "")
        return f"postgresql://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"


@lru_cache()
def get_settings() -> Settings:
    """获取配置单例"""
    return Settings()
