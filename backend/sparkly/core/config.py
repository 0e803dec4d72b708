# sparkly/core/config.py
import os

from dotenv import load_dotenv

from sparkly.core.errors import ConfigurationError

# Only used when ENV is explicitly dev or test and JWT_SECRET is unset.
DEV_JWT_SECRET = "this-is-very-long-dev-jwt-key-123456"


def str_to_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def parse_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [v.strip() for v in value.split(",") if v.strip()]


def merge_unique(items: list[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for v in items:
        if v in seen:
            continue
        seen.add(v)
        out.append(v)
    return out


class Settings:
    def __init__(self) -> None:
        explicit_env = (os.getenv("ENV") or "").strip().lower()
        self.ENV = explicit_env or "dev"  # dev | test | prod
        if self.ENV != "prod":
            # Load .env only for non-prod so prod can't be accidentally influenced by local files.
            load_dotenv()

        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper()

        # ----------------------------
        # Database
        # ----------------------------
        default_db = "" if self.ENV == "prod" else "sqlite:///./sparkly.db"
        self.DATABASE_URL = os.getenv("DATABASE_URL", default_db).strip()

        # ----------------------------
        # Password policy
        # ----------------------------
        self.PASSWORD_MIN_LENGTH = int(os.getenv("PASSWORD_MIN_LENGTH", "6"))

        # ----------------------------
        # CORS
        # ----------------------------
        cors_from_env = parse_csv(os.getenv("CORS_ORIGINS"))
        if self.ENV == "prod":
            self.CORS_ORIGINS = merge_unique(cors_from_env)
        else:
            self.CORS_ORIGINS = merge_unique(cors_from_env + ["http://localhost:4200"])

        # ----------------------------
        # Auth / JWT
        # ----------------------------
        self.JWT_SECRET = os.getenv("JWT_SECRET", "")
        if not self.JWT_SECRET.strip() and explicit_env in {"dev", "test"}:
            self.JWT_SECRET = DEV_JWT_SECRET
        self.JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
        self.JWT_ISSUER = os.getenv("JWT_ISSUER", "sparkly")
        self.JWT_AUDIENCE = os.getenv("JWT_AUDIENCE", "sparkly-api")
        # Issuer/audience are informational on the minting side; the verifier checks them only if asked to.
        self.JWT_VALIDATE_ISSUER = str_to_bool(os.getenv("JWT_VALIDATE_ISSUER"), default=False)
        self.JWT_VALIDATE_AUDIENCE = str_to_bool(os.getenv("JWT_VALIDATE_AUDIENCE"), default=False)
        self.JWT_CLOCK_SKEW_SECONDS = int(os.getenv("JWT_CLOCK_SKEW_SECONDS", "60"))

        self.ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "15"))
        self.REFRESH_TOKEN_EXPIRE_DAYS = int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", "7"))
        self.REFRESH_TOKEN_ROTATION = str_to_bool(os.getenv("REFRESH_TOKEN_ROTATION"), default=False)

        if not self.JWT_SECRET.strip() and self.ENV != "prod":
            # Unset or unknown ENV never gets the local key.
            raise ConfigurationError("JWT_SECRET must be set unless ENV is dev or test")

        self._validate_prod()

    def _validate_prod(self) -> None:
        if self.ENV != "prod":
            return

        missing: list[str] = []
        if not self.JWT_SECRET.strip():
            missing.append("JWT_SECRET")
        if not self.DATABASE_URL:
            missing.append("DATABASE_URL")
        if not self.CORS_ORIGINS:
            missing.append("CORS_ORIGINS")

        if missing:
            raise ConfigurationError(f"Missing required prod env vars: {', '.join(missing)}")

        cors_joined = ",".join(self.CORS_ORIGINS)
        if "localhost" in cors_joined or "127.0.0.1" in cors_joined:
            raise ConfigurationError("CORS_ORIGINS contains localhost/dev origins in prod")

    @property
    def is_prod(self) -> bool:
        return self.ENV == "prod"

    @property
    def database_url(self) -> str:
        return self.DATABASE_URL


settings = Settings()


def require_jwt_secret() -> None:
    # No signing key -> the process must not serve traffic.
    if not settings.JWT_SECRET or not settings.JWT_SECRET.strip():
        raise ConfigurationError("JWT_SECRET must be set")
