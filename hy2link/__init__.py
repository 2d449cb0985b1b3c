"""Hysteria2 share link toolkit"""

__version__ = "1.0.0"

from .encoder import to_uri
from .models import Hysteria2Config
from .parser import ConfigParser, LinkParseError
from .renderer import build_client_config

__all__ = ["ConfigParser", "Hysteria2Config", "LinkParseError", "build_client_config", "to_uri"]
