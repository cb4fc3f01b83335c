import logging
import os
from functools import lru_cache

from pydantic import ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

SUPPORTED_HOST_BACKENDS = ("memory", "wordpress")


class Settings(BaseSettings):
    # API settings
    DEBUG: bool = False
    # Read by the production checks below, so it must be declared before them
    ENVIRONMENT: str = "development"
    PROJECT_NAME: str = "4WP Polylang API Sync"
    API_NAMESPACE: str = "4wp-polylang-sync"
    API_VERSION: str = "v1"

    # CORS settings - accepts string or list, normalized to list[str] by validator
    CORS_ORIGINS: str | list[str] = "*"

    # Host platform settings
    HOST_BACKEND: str = "memory"  # "memory" or "wordpress"
    HOST_SITE_FILE: str = ""  # Seed file for the memory backend, bundled sample site if empty

    # WordPress + Polylang backend
    WORDPRESS_URL: str = ""  # e.g., "https://example.com/wp-json"
    WORDPRESS_USERNAME: str = ""
    WORDPRESS_APP_PASSWORD: str = ""  # Application password for host writes
    WORDPRESS_TIMEOUT: float = 10.0
    # Polylang keeps its taxonomy list in a site option that is not exposed over REST
    TRANSLATABLE_TAXONOMIES: str | list[str] = "category,post_tag"

    # Origin token (nonce) settings
    NONCE_SECRET: str = ""  # Required in production, empty allowed for testing
    NONCE_LIFETIME: int = 86400  # Seconds; a nonce stays valid for up to this long

    # Audit log of sync actions
    SYNC_LOG_ENABLED: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="allow",
    )

    @property
    def API_PREFIX(self) -> str:
        """Route prefix for the sync endpoints, e.g. /4wp-polylang-sync/v1"""
        return f"/{self.API_NAMESPACE.strip('/')}/{self.API_VERSION.strip('/')}"

    @property
    def HOST_SITE_PATH(self) -> str:
        """Absolute path to the memory backend seed file"""
        if self.HOST_SITE_FILE:
            return os.path.abspath(self.HOST_SITE_FILE)
        api_dir = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
        return os.path.join(api_dir, "data", "sample_site.json")

    @field_validator("HOST_BACKEND")
    @classmethod
    def validate_host_backend(cls, v: str) -> str:
        """Validate the host backend name.

        Args:
            v: Backend name

        Returns:
            Normalized backend name

        Raises:
            ValueError: If the backend is not supported
        """
        v = v.strip().lower()
        if v not in SUPPORTED_HOST_BACKENDS:
            raise ValueError(
                f"Unsupported HOST_BACKEND '{v}'. "
                f"Supported backends: {', '.join(SUPPORTED_HOST_BACKENDS)}"
            )
        return v

    @field_validator("WORDPRESS_URL")
    @classmethod
    def validate_wordpress_url(cls, v: str, info: ValidationInfo) -> str:
        """Normalize the WordPress REST root and require it for the wordpress backend.

        Args:
            v: WordPress REST root URL
            info: Validation info containing other field values

        Returns:
            Normalized URL with scheme and no trailing slash

        Raises:
            ValueError: If the wordpress backend is selected without a URL
        """
        v = v.strip()
        if not v:
            if info.data.get("HOST_BACKEND") == "wordpress":
                raise ValueError("WORDPRESS_URL required when HOST_BACKEND=wordpress")
            return v
        if "://" not in v:
            v = "https://" + v
        return v.rstrip("/")

    @field_validator("WORDPRESS_TIMEOUT")
    @classmethod
    def validate_wordpress_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"WORDPRESS_TIMEOUT must be positive, got {v}")
        return v

    @field_validator("NONCE_LIFETIME")
    @classmethod
    def validate_nonce_lifetime(cls, v: int) -> int:
        """Validate nonce lifetime is within acceptable range.

        Args:
            v: Lifetime in seconds

        Returns:
            Validated lifetime

        Raises:
            ValueError: If lifetime is outside acceptable range
        """
        if v < 60:
            raise ValueError("NONCE_LIFETIME must be at least 60 seconds")
        if v > 7 * 24 * 3600:
            raise ValueError("NONCE_LIFETIME must be ≤ 7 days")
        return v

    @field_validator("TRANSLATABLE_TAXONOMIES", mode="before")
    @classmethod
    def parse_translatable_taxonomies(cls, v: str | list[str]) -> list[str]:
        """Normalize TRANSLATABLE_TAXONOMIES to a list of taxonomy names.

        Accepts either a comma-separated string or a list of strings.
        """
        if isinstance(v, list):
            return [name.strip() for name in v if isinstance(name, str) and name.strip()]

        if isinstance(v, str):
            return [name.strip() for name in v.split(",") if name.strip()]

        return []

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: str | list[str]) -> list[str]:
        """Split a comma-separated origin list; a lone "*" allows every origin."""
        if isinstance(v, list):
            return [
                host.strip() for host in v if isinstance(host, str) and host.strip()
            ]

        if isinstance(v, str):
            if v.strip() == "*":
                return ["*"]
            return [host.strip() for host in v.split(",") if host.strip()]

        # Unexpected types fail closed (deny all origins)
        return []

    @classmethod
    def _is_production(cls, info: ValidationInfo) -> bool:
        """Check if ENVIRONMENT indicates production."""
        raw_env = info.data.get("ENVIRONMENT", "development")
        environment = str(raw_env).strip().lower()
        if environment in {"prod"}:
            environment = "production"
        return environment == "production"

    @field_validator("CORS_ORIGINS")
    @classmethod
    def validate_cors_in_production(cls, v: list[str], info) -> list[str]:
        """Reject wildcard CORS in production environments."""
        if cls._is_production(info) and v == ["*"]:
            raise ValueError("CORS wildcard '*' not allowed in production")

        return v

    @field_validator("NONCE_SECRET")
    @classmethod
    def validate_nonce_secret_in_production(cls, v: str, info) -> str:
        """Ensure NONCE_SECRET is set in production environments.

        Args:
            v: The NONCE_SECRET value
            info: Validation info containing other field values

        Returns:
            The validated and stripped NONCE_SECRET

        Raises:
            ValueError: If NONCE_SECRET is empty in production
        """
        if cls._is_production(info) and not v.strip():
            raise ValueError("NONCE_SECRET required in production")

        return v.strip()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide settings, read from the environment and .env on first use."""
    return Settings()


def reset_settings() -> None:
    """Forget the cached settings so the next get_settings() reads them again."""
    get_settings.cache_clear()
