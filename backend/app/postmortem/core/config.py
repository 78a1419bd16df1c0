from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="PM_", env_file=".env", extra="ignore")

    OUTPUT_DIR: str = Field(default="./test")
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FILE: str | None = Field(default=None)

    # 文件系统瞬时错误重试
    FS_MAX_RETRIES: int = Field(default=3, ge=0)
    FS_RETRY_BASE_DELAY_S: float = Field(default=0.05, ge=0)
    FS_RETRY_MAX_DELAY_S: float = Field(default=1.0, ge=0)

settings = Settings()
