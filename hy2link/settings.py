"""Runtime settings, read from the environment and an optional .env file"""

import os
from dataclasses import dataclass
from pathlib import Path
from dotenv import find_dotenv, load_dotenv

LOCALHOST = "127.0.0.1"

PACKAGE_DIR = Path(__file__).resolve().parent
DEFAULT_CLIENT_PATH = PACKAGE_DIR / "bin" / "hysteria"
DEFAULT_CACHE_DIR = Path.home() / ".hy2link" / "cache"
DEFAULT_CLIENT_VERSION = "app/v2.6.0"


@dataclass
class Settings:
    client_path: Path = DEFAULT_CLIENT_PATH
    cache_dir: Path = DEFAULT_CACHE_DIR
    listen_host: str = LOCALHOST
    client_version: str = DEFAULT_CLIENT_VERSION

    @classmethod
    def from_env(cls, dotenv_path=None) -> "Settings":
        load_dotenv(dotenv_path or find_dotenv(usecwd=True))
        return cls(
            client_path=Path(os.getenv("HY2_CLIENT_PATH", str(DEFAULT_CLIENT_PATH))).expanduser(),
            cache_dir=Path(os.getenv("HY2_CACHE_DIR", str(DEFAULT_CACHE_DIR))).expanduser(),
            listen_host=os.getenv("HY2_LISTEN_HOST", LOCALHOST),
            client_version=os.getenv("HY2_CLIENT_VERSION", DEFAULT_CLIENT_VERSION),
        )
