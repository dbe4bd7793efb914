import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str = "False") -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


@dataclass
class Settings:
    # Application settings
    app_name: str = "My Book Collection"
    api_host: str = "127.0.0.1"
    api_port: int = 3000
    debug: bool = False
    log_level: str = "INFO"

    # Database settings
    database_file: str = "library.db"
    database_pool_size: int = 5
    database_pool_timeout: float = 5.0

    # Open Library settings
    openlibrary_search_url: str = "https://openlibrary.org/search.json"
    openlibrary_cover_url: str = "https://covers.openlibrary.org/b/isbn/{isbn}-L.jpg"
    openlibrary_timeout: float = 10.0

    # Cover lookup cache settings
    cover_cache_ttl: int = 3600
    cover_cache_max_entries: int = 1000

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the current environment (after .env is loaded)."""
        return cls(
            app_name=os.getenv("APP_NAME", cls.app_name),
            api_host=os.getenv("API_HOST", cls.api_host),
            api_port=int(os.getenv("API_PORT", str(cls.api_port))),
            debug=_env_bool("DEBUG"),
            log_level=os.getenv("LOG_LEVEL", cls.log_level).upper(),
            # LIBRARY_DB_FILE wins over DB_NAME
            database_file=(
                os.getenv("LIBRARY_DB_FILE")
                or os.getenv("DB_NAME")
                or cls.database_file
            ),
            database_pool_size=int(os.getenv("DATABASE_POOL_SIZE", str(cls.database_pool_size))),
            database_pool_timeout=float(os.getenv("DATABASE_POOL_TIMEOUT", str(cls.database_pool_timeout))),
            openlibrary_search_url=os.getenv("OPENLIBRARY_SEARCH_URL", cls.openlibrary_search_url),
            openlibrary_cover_url=os.getenv("OPENLIBRARY_COVER_URL", cls.openlibrary_cover_url),
            openlibrary_timeout=float(os.getenv("OPENLIBRARY_TIMEOUT", str(cls.openlibrary_timeout))),
            cover_cache_ttl=int(os.getenv("COVER_CACHE_TTL", str(cls.cover_cache_ttl))),
            cover_cache_max_entries=int(os.getenv("COVER_CACHE_MAX_ENTRIES", str(cls.cover_cache_max_entries))),
        )


settings = Settings.from_env()
