"""
Runtime Environment Validation Module

Validates required environment variables at application startup.
If validation fails, the application refuses to start (hard fail).
"""

import sys
from typing import NoReturn

from pydantic import ValidationError

from homestay.core.config import Settings, StorageProvider, get_settings

MIN_SECRET_LENGTH = 32


def _fail(*lines: str) -> NoReturn:
    for line in lines:
        print(line, file=sys.stderr)
    sys.exit(1)


def validate_environment() -> Settings:
    """
    Validate all required environment variables.

    Returns:
        Settings: Validated settings object

    Raises:
        SystemExit: If validation fails (exit code 1)
    """
    try:
        settings = get_settings()
    except ValidationError as e:
        print("❌ FATAL: Environment validation failed", file=sys.stderr)
        print("\nMissing or invalid environment variables:", file=sys.stderr)
        for error in e.errors():
            field = " -> ".join(str(loc) for loc in error["loc"])
            print(f"   • {field}: {error['msg']}", file=sys.stderr)
        _fail(
            "\nThe application cannot start with invalid configuration.",
            "Please check your .env file or environment variables.",
        )

    if settings.is_production:
        # 1. CORS: wildcard is not allowed in production
        origins = [o.strip() for o in settings.allowed_origins.split(",")]
        if "*" in origins:
            _fail(
                "❌ FATAL: Wildcard CORS origin (*) detected in production mode.",
                "   Set ALLOWED_ORIGINS to specific domains (comma-separated).",
            )

        # 2. JWT secrets must be long enough to resist brute force
        for name in ("jwt_secret", "jwt_refresh_secret"):
            if len(getattr(settings, name)) < MIN_SECRET_LENGTH:
                _fail(f"❌ FATAL: {name.upper()} must be at least {MIN_SECRET_LENGTH} characters in production")
        if settings.jwt_secret == settings.jwt_refresh_secret:
            _fail("❌ FATAL: JWT_SECRET and JWT_REFRESH_SECRET must differ")

        # 3. Database URL: PostgreSQL only (exclusion constraint on reservations)
        if not settings.database_url.startswith("postgresql"):
            _fail(
                "❌ FATAL: DATABASE_URL must be a PostgreSQL connection string "
                "(postgresql:// or postgresql+asyncpg://)"
            )

    # 4. Storage Provider: provider-specific configuration
    if settings.storage_provider == StorageProvider.GCS:
        if not settings.gcs_bucket_name or not settings.gcs_project_id:
            _fail("❌ FATAL: GCS_BUCKET_NAME and GCS_PROJECT_ID required when STORAGE_PROVIDER=gcs")
    elif settings.storage_provider == StorageProvider.S3:
        if not settings.s3_bucket_name or not settings.aws_access_key_id or not settings.aws_secret_access_key:
            _fail(
                "❌ FATAL: S3_BUCKET_NAME, AWS_ACCESS_KEY_ID, and AWS_SECRET_ACCESS_KEY "
                "required when STORAGE_PROVIDER=s3"
            )

    print("✅ Environment validation passed")
    print(f"   App: {settings.app_name} ({settings.environment})")
    print(f"   Storage: {settings.storage_provider.value}")
    print(f"   CORS Origins: {settings.allowed_origins}")

    return settings


if __name__ == "__main__":
    validate_environment()
    print("\n✅ All environment variables are valid!")
