import base64
import binascii
import re
import urllib.parse
from typing import List, Optional, Tuple
from rich.console import Console
from .models import Hysteria2Config

SCHEMES = ("hysteria2", "hy2")
DEFAULT_PORT = "443"

_SINGLE_PORT = re.compile(r"[0-9]+")
_HOP_PORTS = re.compile(r"[0-9]+(?:-[0-9]+)?(?:,[0-9]+(?:-[0-9]+)?)*")

console = Console(stderr=True)


class LinkParseError(ValueError):
    """Share link could not be parsed"""
    pass


class ConfigParser:
    @staticmethod
    def parse_file(file_path: str) -> List[Hysteria2Config]:
        with open(file_path, 'r', encoding='utf-8') as f:
            return ConfigParser.parse_text(f.read())

    @staticmethod
    def parse_text(text: str) -> List[Hysteria2Config]:
        """
        Parses a list of share links, one per line.
        Accepts base64-wrapped subscription bodies as well.
        Lines that are not Hysteria2 links are skipped, broken ones are reported.
        """
        configs = []
        for line in ConfigParser._unwrap_subscription(text).splitlines():
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            try:
                config = ConfigParser.parse_link(line)
            except LinkParseError as e:
                console.print(f"[yellow]Skipping line: {line[:50]}... | {e}[/yellow]")
                continue
            if config:
                configs.append(config)
        return configs

    @staticmethod
    def parse_link(link: str) -> Optional[Hysteria2Config]:
        scheme, sep, _ = link.partition("://")
        if not sep:
            return None
        if scheme.lower() not in SCHEMES:
            return None
        return ConfigParser._parse_hysteria2(link)

    @staticmethod
    def _unwrap_subscription(text: str) -> str:
        stripped = text.strip()
        if not stripped or "://" in stripped:
            return text
        # Subscription bodies are often base64 of the newline separated list
        compact = "".join(stripped.split()).replace("-", "+").replace("_", "/")
        compact += '=' * (-len(compact) % 4)
        try:
            return base64.b64decode(compact, validate=True).decode('utf-8')
        except (binascii.Error, UnicodeDecodeError):
            return text

    @staticmethod
    def _split_authority(netloc: str) -> Tuple[str, str, str, str]:
        """
        Splits user:password@host:port, keeping multi-port hop ranges intact.
        Returns (username, password, host, ports) with userinfo percent-decoded.
        """
        userinfo, _, hostport = netloc.rpartition("@")
        username, _, password = userinfo.partition(":")

        if hostport.startswith("["):
            end = hostport.find("]")
            if end == -1:
                raise LinkParseError("unbalanced IPv6 bracket")
            host = hostport[1:end]
            rest = hostport[end + 1:]
            if rest and not rest.startswith(":"):
                raise LinkParseError(f"unexpected text after IPv6 host: {rest}")
            port = rest[1:]
        else:
            host, _, port = hostport.partition(":")

        return urllib.parse.unquote(username), urllib.parse.unquote(password), host, port

    @staticmethod
    def _normalize_ports(port: str) -> str:
        if not port:
            return DEFAULT_PORT
        if _SINGLE_PORT.fullmatch(port):
            number = int(port)
            if number > 65535:
                raise LinkParseError(f"port out of range: {port}")
            return str(number) if number > 0 else DEFAULT_PORT
        if _HOP_PORTS.fullmatch(port):
            return port
        raise LinkParseError(f"invalid port: {port}")

    @staticmethod
    def _parse_hysteria2(link: str) -> Hysteria2Config:
        # hysteria2://[user[:password]@]host[:port][?query][#name]
        try:
            parsed = urllib.parse.urlsplit(link)
        except ValueError as e:
            raise LinkParseError(f"Invalid Hysteria2 link: {e}") from e

        username, password, host, port = ConfigParser._split_authority(parsed.netloc)
        query_params = urllib.parse.parse_qs(parsed.query, keep_blank_values=True)

        def param(key: str) -> Optional[str]:
            values = query_params.get(key)
            return values[0] if values else None

        config = Hysteria2Config(
            name=urllib.parse.unquote(parsed.fragment),
            server_address=host,
            server_ports=ConfigParser._normalize_ports(port),
        )

        if username.strip():
            config.auth = username
        # A blank username leaves a leading colon, which the client reads as password-only auth
        if password.strip():
            config.auth += ":" + password

        sni = param("sni")
        if sni is not None:
            config.sni = sni
        insecure = param("insecure")
        if insecure is not None:
            config.allow_insecure = insecure == "1"
        pin = param("pinSHA256")
        if pin is not None:
            config.pin_sha256 = pin
        if param("obfs") == "salamander":
            obfs_password = param("obfs-password")
            if obfs_password is not None:
                config.obfs = obfs_password

        return config
