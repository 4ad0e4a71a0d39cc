"""Configuration management for Salon Recovery."""

import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


class Config:
    """Application configuration."""

    # Application Settings
    DEBUG: bool = _env_bool("DEBUG", "False")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Security
    API_KEY: str = os.getenv("API_KEY", "")  # For management endpoints

    # Salon
    SALON_NAME: str = os.getenv("SALON_NAME", "Our Salon")
    # IANA zone used to derive weekday/daypart from timezone-aware instants.
    SALON_TIMEZONE: str = os.getenv("SALON_TIMEZONE", "UTC")

    # Rebooking
    REBOOKING_MAX_SUGGESTIONS: int = int(os.getenv("REBOOKING_MAX_SUGGESTIONS", "3"))
    REBOOKING_DAYS_AHEAD: int = int(os.getenv("REBOOKING_DAYS_AHEAD", "14"))
    REBOOKING_PREFER_SAME_PROVIDER: bool = _env_bool("REBOOKING_PREFER_SAME_PROVIDER", "False")

    # Platform adapters
    ADAPTER_TIMEOUT_SECONDS: float = float(os.getenv("ADAPTER_TIMEOUT_SECONDS", "10"))
    # When enabled, unknown platform status strings raise instead of passing through lower-cased.
    STRICT_STATUS_MAPPING: bool = _env_bool("STRICT_STATUS_MAPPING", "False")
    ENABLE_SANDBOX_PLATFORM: bool = _env_bool("ENABLE_SANDBOX_PLATFORM", "True")

    VAGARO_BASE_URL: str = os.getenv("VAGARO_BASE_URL", "https://api.vagaro.com/v1")
    VAGARO_CLIENT_ID: str = os.getenv("VAGARO_CLIENT_ID", "")
    VAGARO_CLIENT_SECRET: str = os.getenv("VAGARO_CLIENT_SECRET", "")

    MINDBODY_BASE_URL: str = os.getenv("MINDBODY_BASE_URL", "https://api.mindbodyonline.com/public/v6")
    MINDBODY_API_KEY: str = os.getenv("MINDBODY_API_KEY", "")
    MINDBODY_SITE_ID: str = os.getenv("MINDBODY_SITE_ID", "")
    MINDBODY_USERNAME: str = os.getenv("MINDBODY_USERNAME", "")
    MINDBODY_PASSWORD: str = os.getenv("MINDBODY_PASSWORD", "")

    PHOREST_BASE_URL: str = os.getenv("PHOREST_BASE_URL", "https://api.phorest.com/third_party_api/v1")
    PHOREST_CLIENT_ID: str = os.getenv("PHOREST_CLIENT_ID", "")
    PHOREST_CLIENT_SECRET: str = os.getenv("PHOREST_CLIENT_SECRET", "")
    PHOREST_BRANCH_ID: str = os.getenv("PHOREST_BRANCH_ID", "main-branch")

    # Messaging
    # Optional JSON file: {"followUp": {"subject": "...", "body": "..."}, ...}
    MESSAGE_TEMPLATES_PATH: str = os.getenv("MESSAGE_TEMPLATES_PATH", "")
    # The reminder's {days_since} is computed at generation time unless this is enabled,
    # in which case it is computed relative to the reminder's scheduled send time.
    REMINDER_DAYS_SINCE_FROM_SEND_TIME: bool = _env_bool("REMINDER_DAYS_SINCE_FROM_SEND_TIME", "False")

    @classmethod
    def has_vagaro_config(cls) -> bool:
        """Check if Vagaro OAuth credentials are configured."""
        return bool(cls.VAGARO_CLIENT_ID and cls.VAGARO_CLIENT_SECRET)

    @classmethod
    def has_mindbody_config(cls) -> bool:
        """Check if Mindbody API key and site are configured."""
        return bool(cls.MINDBODY_API_KEY and cls.MINDBODY_SITE_ID)

    @classmethod
    def has_phorest_config(cls) -> bool:
        """Check if Phorest OAuth credentials are configured."""
        return bool(cls.PHOREST_CLIENT_ID and cls.PHOREST_CLIENT_SECRET)

    @classmethod
    def configured_platforms(cls) -> list[str]:
        """Platform identifiers that have credentials available."""
        platforms = []
        if cls.has_vagaro_config():
            platforms.append("vagaro")
        if cls.has_mindbody_config():
            platforms.append("mindbody")
        if cls.has_phorest_config():
            platforms.append("phorest")
        if cls.ENABLE_SANDBOX_PLATFORM:
            platforms.append("sandbox")
        return platforms


# Create a global config instance
config = Config()
