from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class GlobalConfig(BaseSettings):
    """Process-wide settings, read from the environment or a ``.env`` file.

    Every variable is prefixed with ``OPENSEARCH_REPOSITORIES_``, e.g.
    ``OPENSEARCH_REPOSITORIES_OPENSEARCH_HOST``.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="OPENSEARCH_REPOSITORIES_",
        extra="ignore",
    )

    opensearch_host: str = "localhost"
    opensearch_port: int = 9200
    use_ssl: bool = False
    verify_certs: bool = False
    http_auth_user: Optional[str] = None
    http_auth_password: Optional[str] = None

    # when set, requests are signed with AWS SigV4 (Amazon OpenSearch Service)
    aws_region: Optional[str] = None
    aws_service: str = "es"

    # records() may keep an order imposed by the caller only when this is on
    allow_explicit_order: bool = False

    # source field holding the entity type name in multi-type indices
    type_field: str = "type"


_global_config: GlobalConfig | None = None


def get_global_config() -> GlobalConfig:
    """Build the settings on first use and return the cached instance."""
    global _global_config
    if _global_config is None:
        _global_config = GlobalConfig()
    return _global_config


def reset_global_config() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    global _global_config
    _global_config = None
