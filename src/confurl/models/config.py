"""Pydantic configuration models for confurl."""

from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field

from .. import __version__

DEFAULT_CONNECT_TIMEOUT = 3.0
DEFAULT_REQUEST_TIMEOUT = 10.0
DEFAULT_BLOCK_SIZE = 8192
DEFAULT_USER_AGENT = f"confurl+{__version__}"


class FetchOptions(BaseModel):
    """Per-fetch transport options."""

    connect_timeout: float = Field(
        DEFAULT_CONNECT_TIMEOUT, gt=0, description="Connect-phase timeout in seconds"
    )
    total_timeout: float = Field(
        DEFAULT_REQUEST_TIMEOUT, gt=0, description="Whole-request timeout in seconds"
    )
    use_tls: bool = Field(
        False,
        description="Negotiate explicit TLS (AUTH TLS) on a plain FTP control connection",
    )
    verify_tls: bool = Field(True, description="Verify TLS peer certificates")
    extra_headers: dict[str, str] = Field(
        default_factory=dict,
        description="Request headers added to, or overriding, the defaults",
    )
    follow_redirects: bool = Field(True, description="Follow redirects transparently")

    model_config = {"extra": "forbid"}


class ConfUrlConfig(BaseModel):
    """
    Root configuration model for confurl.

    Example:
        config = ConfUrlConfig(connect_timeout=5, headers={"X-Env": "prod"})
        fetcher = UrlFetcher(config)

    YAML format:
        connect_timeout: 5
        request_timeout: 20
        verify_tls: true
        headers:
          X-Env: prod
    """

    connect_timeout: float = Field(
        DEFAULT_CONNECT_TIMEOUT, gt=0, description="Connect-phase timeout in seconds"
    )
    request_timeout: float = Field(
        DEFAULT_REQUEST_TIMEOUT, gt=0, description="Whole-request timeout in seconds"
    )
    verify_tls: bool = Field(
        True,
        description="Verify TLS certificates (a URL may still disable this via ssl_verify)",
    )
    user_agent: Optional[str] = Field(None, description="Custom User-Agent header")
    headers: dict[str, str] = Field(
        default_factory=dict,
        description="Request headers added to, or overriding, the defaults",
    )
    block_size: int = Field(
        DEFAULT_BLOCK_SIZE, ge=1, description="Block size reported by stat for URL paths"
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        "INFO",
        description="Logging level",
    )
    log_file: Optional[Path] = Field(None, description="Log file path")

    model_config = {"extra": "forbid"}

    def fetch_options(self, **overrides: object) -> FetchOptions:
        """Build the FetchOptions for one request from this configuration."""
        values: dict[str, object] = {
            "connect_timeout": self.connect_timeout,
            "total_timeout": self.request_timeout,
            "verify_tls": self.verify_tls,
            "extra_headers": dict(self.headers),
        }
        values.update(overrides)
        return FetchOptions(**values)

    def to_yaml(self) -> str:
        """Serialize config to YAML string."""
        import yaml

        return yaml.dump(self.model_dump(mode="json", exclude_none=True), default_flow_style=False)

    @classmethod
    def from_yaml(cls, yaml_str: str) -> "ConfUrlConfig":
        """Load config from YAML string."""
        import yaml

        data = yaml.safe_load(yaml_str) or {}
        return cls.model_validate(data)

    @classmethod
    def from_yaml_file(cls, path: Path) -> "ConfUrlConfig":
        """Load config from YAML file."""
        return cls.from_yaml(Path(path).read_text())
