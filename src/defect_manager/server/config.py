"""Configuration for the defect-manager server."""

from functools import lru_cache

from pydantic import BaseModel, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ObsSettings(BaseModel):
    """S3-compatible object store receiving bulletins."""

    access_key: str = ""
    secret_key: str = ""
    endpoint: str = ""
    bucket: str = ""
    directory: str = "defect"


class BackendSettings(BaseModel):
    """CVE security notice backend."""

    endpoint: str = "https://api.openeuler.org"


class ProductTreeSettings(BaseModel):
    """Package repository used to build bulletin product trees."""

    repo_url: str = "https://repo.openeuler.org"
    arches: list[str] = ["aarch64", "x86_64"]


class Settings(BaseSettings):
    """Server configuration settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Server settings
    host: str = "0.0.0.0"
    port: int = 8080
    debug: bool = False

    # Gitee settings
    robot_token: str
    enterprise_token: str = ""
    enterprise_id: str = ""
    gitee_webhook_secret: str = ""

    # Issue workflow
    issue_type: str = "缺陷"
    source_namespace: str = "src-openeuler"
    maintain_version: list[str]
    develop_version: list[str] = []
    pkg_policy: list[dict[str, int]] = []
    check_committer_authority: bool = False

    # Storage and bulletin publishing
    database_url: str = "sqlite:///defect.db"
    obs: ObsSettings = ObsSettings()
    backend: BackendSettings = BackendSettings()
    product_tree: ProductTreeSettings = ProductTreeSettings()

    # Logging
    log_level: str = "INFO"

    @field_validator("robot_token")
    @classmethod
    def robot_token_required(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("robot_token must be set")
        return v

    @field_validator("maintain_version")
    @classmethod
    def maintain_version_required(cls, v: list[str]) -> list[str]:
        versions = [item.strip() for item in v if item.strip()]
        if not versions:
            raise ValueError("maintain_version must list at least one version")
        return versions


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()  # type: ignore[call-arg]
