import os



def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]

APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

CORS_ALLOWED_ORIGINS = _get_list(os.getenv("CORS_ALLOWED_ORIGINS"), ["http://localhost:4200"])

# Appointment dates and times are wall-clock values in this zone.
CLINIC_TIMEZONE = os.getenv("CLINIC_TIMEZONE", "UTC")

SLOT_GRANULARITY_MINUTES = int(os.getenv("SLOT_GRANULARITY_MINUTES", "30"))
DEFAULT_APPOINTMENT_DURATION_MINUTES = int(os.getenv("DEFAULT_APPOINTMENT_DURATION_MINUTES", "30"))
CANCEL_LEAD_TIME_HOURS = int(os.getenv("CANCEL_LEAD_TIME_HOURS", "2"))
RESCHEDULE_LEAD_TIME_HOURS = int(os.getenv("RESCHEDULE_LEAD_TIME_HOURS", "4"))
APPOINTMENT_ID_PREFIX = os.getenv("APPOINTMENT_ID_PREFIX", "APT")
MAX_REASON_LENGTH = int(os.getenv("MAX_REASON_LENGTH", "600"))

SWEEPER_ENABLED = _get_bool(os.getenv("SWEEPER_ENABLED"), default=True)
SWEEPER_INTERVAL_MINUTES = int(os.getenv("SWEEPER_INTERVAL_MINUTES", "5"))

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))

def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if SLOT_GRANULARITY_MINUTES <= 0:
        raise RuntimeError("SLOT_GRANULARITY_MINUTES must be positive.")
