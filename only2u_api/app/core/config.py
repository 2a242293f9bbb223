"""
Simple configuration management.

The ``Settings`` dataclass reads configuration directly from
environment variables.  Defaults are provided for every field so that
the API starts locally without any third-party credentials; the
provider integrations (WhatsApp, Sisdial, Razorpay, Expo, Gemini)
report themselves as not configured until their keys are set.
"""

import os
from dataclasses import dataclass


@dataclass
class Settings:
    """Application settings loaded from environment variables."""

    project_name: str = os.getenv("PROJECT_NAME", "Only2U API")
    api_version: str = os.getenv("API_VERSION", "1.0.0")
    debug: bool = os.getenv("DEBUG", "false").lower() in {"1", "true", "yes"}
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_file: str = os.getenv("LOG_FILE", "")
    secret_key: str = os.getenv("SECRET_KEY", "change_me")
    session_expire_hours: int = int(os.getenv("SESSION_EXPIRE_HOURS", str(24 * 7)))

    # Comma separated list of allowed CORS origins.  The mobile client and
    # the admin dashboard call the API from different origins.
    cors_origins: str = os.getenv("CORS_ORIGINS", "*")

    # Optional static token for super-administrator API access.  Requests
    # carrying this token bypass session lookup and get role 1.
    super_admin_static_token: str = os.getenv("SUPER_ADMIN_TOKEN", "")

    # Phones (E.164, comma separated) that get the admin role when their
    # user record is first created.
    admin_phones: str = os.getenv("ADMIN_PHONES", "")

    # Path or connection string for the SQLite database.  Relative paths
    # are resolved against the project root by the ``db`` module.
    database_url: str = os.getenv("DATABASE_URL", "only2u.db")

    # OTP issued by the API and delivered over WhatsApp
    default_country_code: str = os.getenv("DEFAULT_COUNTRY_CODE", "91")
    otp_length: int = int(os.getenv("OTP_LENGTH", "6"))
    otp_expiry_seconds: int = int(os.getenv("OTP_EXPIRY_SECONDS", "300"))
    otp_max_attempts: int = int(os.getenv("OTP_MAX_ATTEMPTS", "3"))

    whatsapp_api_url: str = os.getenv("WHATSAPP_API_URL", "https://graph.facebook.com/v24.0")
    whatsapp_phone_number_id: str = os.getenv("WHATSAPP_PHONE_NUMBER_ID", "")
    whatsapp_access_token: str = os.getenv("WHATSAPP_ACCESS_TOKEN", "")
    whatsapp_template_name: str = os.getenv("WHATSAPP_TEMPLATE_NAME", "otp_new")
    whatsapp_template_language: str = os.getenv("WHATSAPP_TEMPLATE_LANGUAGE", "en_US")

    # OTP generated and validated by the Sisdial SMS gateway
    sisdial_base_url: str = os.getenv("SISDIAL_BASE_URL", "http://user.sisdial.in")
    sisdial_user_id: str = os.getenv("SISDIAL_USER_ID", "")
    sisdial_api_key: str = os.getenv("SISDIAL_API_KEY", "")
    sisdial_time_to_alive: int = int(os.getenv("SISDIAL_TIME_TO_ALIVE", "200"))

    razorpay_api_url: str = os.getenv("RAZORPAY_API_URL", "https://api.razorpay.com/v1")
    razorpay_key_id: str = os.getenv("RAZORPAY_KEY_ID", "")
    razorpay_key_secret: str = os.getenv("RAZORPAY_KEY_SECRET", "")

    expo_push_url: str = os.getenv("EXPO_PUSH_URL", "https://exp.host/--/api/v2/push/send")
    expo_push_chunk_size: int = int(os.getenv("EXPO_PUSH_CHUNK_SIZE", "100"))

    gemini_api_url: str = os.getenv(
        "GEMINI_API_URL", "https://generativelanguage.googleapis.com/v1beta"
    )
    gemini_api_key: str = os.getenv("GEMINI_API_KEY", "")
    gemini_model: str = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")

    # Number of candidates tried when claiming a reward code loses a race.
    reward_claim_attempts: int = int(os.getenv("REWARD_CLAIM_ATTEMPTS", "3"))

    http_timeout: float = float(os.getenv("HTTP_TIMEOUT", "30"))


# Instantiate settings once so other modules can import it without
# repeatedly reading environment variables.  Environment variables must
# be set before this module is imported.
settings = Settings()
