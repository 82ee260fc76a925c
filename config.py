import os


class ConfigurationError(RuntimeError):
    pass


def _as_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


# Environment / Auth settings
SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key-change-me")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24))

SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "session")
SESSION_COOKIE_SECURE = _as_bool(os.getenv("SESSION_COOKIE_SECURE", "false"))

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

DATABASE_NAME = os.getenv("DATABASE_NAME", "reseller")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
PORT = int(os.getenv("PORT", 8000))

# Invoice branding
COMPANY_NAME = os.getenv("COMPANY_NAME", "Reseller Back Office")
COMPANY_ADDRESS = os.getenv("COMPANY_ADDRESS", "")
COMPANY_WEBSITE = os.getenv("COMPANY_WEBSITE", "")
INVOICE_ADMIN_NAME = os.getenv("INVOICE_ADMIN_NAME", "Administrator")
INVOICE_THANK_YOU = os.getenv("INVOICE_THANK_YOU", "Thank you for your business!")
INVOICE_CURRENCY = os.getenv("INVOICE_CURRENCY", "BDT")


def database_url() -> str:
    """Connection string of the document store; there is no fallback."""
    url = os.getenv("DATABASE_URL")
    if not url:
        raise ConfigurationError("DATABASE_URL is not defined in environment variables")
    return url
