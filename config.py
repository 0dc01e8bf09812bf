import os
from dataclasses import dataclass, field
from typing import List

from dotenv import load_dotenv

from errors import ConfigError

load_dotenv()

PROD_ORIGIN = "https://sardene.cf"
DEV_ORIGIN = "http://localhost:3000"


def _origins(environment: str) -> List[str]:
    raw = os.getenv("ALLOWED_ORIGINS", "")
    origins = [o.strip() for o in raw.split(",") if o.strip()]
    if origins:
        return origins
    return [DEV_ORIGIN] if environment == "dev" else [PROD_ORIGIN]


@dataclass(frozen=True)
class Settings:
    environment: str = "dev"
    database_url: str = "mongodb://localhost:27017"
    database_name: str = "sardene"
    github_client: str = ""
    github_secret: str = ""
    allowed_origins: List[str] = field(default_factory=lambda: [DEV_ORIGIN])
    # Seconds. Provider calls sit on the request path, keep this short.
    provider_timeout_s: float = 5.0
    directory_timeout_s: float = 10.0
    write_timeout_s: float = 30.0
    log_level: str = "INFO"
    error_detail: str = "minimal"  # "minimal" | "verbose"

    def check(self) -> None:
        missing = [
            key
            for key, value in (("GITHUB_CLIENT", self.github_client), ("GITHUB_SECRET", self.github_secret))
            if not value
        ]
        if missing:
            raise ConfigError("No env value provided for " + ", ".join(missing))


def load_settings() -> Settings:
    environment = os.getenv("ENVIRONMENT", "dev").strip().lower()
    return Settings(
        environment=environment,
        database_url=os.getenv("DATABASE_URL", "mongodb://localhost:27017"),
        database_name=os.getenv("DATABASE_NAME", "sardene"),
        github_client=os.getenv("GITHUB_CLIENT", ""),
        github_secret=os.getenv("GITHUB_SECRET", ""),
        allowed_origins=_origins(environment),
        provider_timeout_s=float(os.getenv("PROVIDER_TIMEOUT_S", "5")),
        directory_timeout_s=float(os.getenv("DIRECTORY_TIMEOUT_S", "10")),
        write_timeout_s=float(os.getenv("WRITE_TIMEOUT_S", "30")),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        error_detail=os.getenv("ERROR_DETAIL", "minimal").lower(),
    )
