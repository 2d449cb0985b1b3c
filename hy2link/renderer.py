import os
from typing import Callable, Optional, Union
from .document import (
    Entry, block, boolean, integer, mbps, optional_fields,
    positive, quoted, render_document, scalar, seconds,
)
from .models import Hysteria2Config
from .settings import LOCALHOST
from .utils import is_ip_address, is_ipv6_address, wrap_uri

CacheFile = Callable[[], Union[str, os.PathLike]]

_QUIC_FIELDS = (
    ("initStreamReceiveWindow", "init_stream_receive_window", positive, integer),
    ("maxStreamReceiveWindow", "max_stream_receive_window", positive, integer),
    ("initConnReceiveWindow", "init_conn_receive_window", positive, integer),
    ("maxConnReceiveWindow", "max_conn_receive_window", positive, integer),
)

_BANDWIDTH_FIELDS = (
    ("up", "upload_mbps", positive, mbps),
    ("down", "download_mbps", positive, mbps),
)


def server_hostport(config: Hysteria2Config) -> str:
    if config.is_hopping():
        # hopping is incompatible with chain, always dial the literal server
        if is_ipv6_address(config.server_address):
            return f"[{config.server_address}]:{config.server_ports}"
        return f"{config.server_address}:{config.server_ports}"
    return wrap_uri(config.final_address or config.server_address, config.final_port or config.server_ports)


def effective_sni(config: Hysteria2Config) -> str:
    """
    SNI to send. When traffic goes through a local redirector the dial address
    is loopback, so the original hostname is used to keep certificate checks working.
    """
    if config.sni.strip():
        return config.sni
    if (not is_ip_address(config.server_address)
            and config.final_address == LOCALHOST
            and not config.is_hopping()):
        return config.server_address
    return config.sni


def _ca_entry(config: Hysteria2Config, cache_file: Optional[CacheFile]) -> Optional[Entry]:
    if not config.ca_text.strip() or cache_file is None:
        return None
    ca_path = os.path.abspath(cache_file())
    with open(ca_path, 'w', encoding='utf-8') as f:
        f.write(config.ca_text)
    return scalar("ca", quoted(ca_path))


def build_client_config(
    config: Hysteria2Config,
    port: int,
    cache_file: Optional[CacheFile] = None,
    listen_host: str = LOCALHOST,
) -> str:
    """
    Renders the hysteria client configuration exposing a SOCKS5 listener on listen_host:port.

    cache_file, if given, returns the path the inline CA certificate is written to.
    It is called at most once. Blank fields are rendered as-is, validation is left to the caller.
    """
    sni = effective_sni(config)

    entries = [
        scalar("server", quoted(server_hostport(config))),
        scalar("auth", quoted(config.auth)) if config.auth.strip() else None,
        block(
            "tls",
            scalar("insecure", boolean(config.allow_insecure)),
            scalar("sni", quoted(sni)) if sni.strip() else None,
            _ca_entry(config, cache_file),
            scalar("pinSHA256", quoted(config.pin_sha256)) if config.pin_sha256.strip() else None,
        ),
        block(
            "transport",
            scalar("type", "udp"),
            block("udp", scalar("hopInterval", seconds(config.hop_interval))) if config.is_hopping() else None,
        ),
    ]

    if config.obfs.strip():
        entries.append(block(
            "obfs",
            scalar("type", "salamander"),
            block("salamander", scalar("password", quoted(config.obfs))),
        ))

    entries.append(block(
        "quic",
        scalar("disablePathMTUDiscovery", boolean(config.disable_mtu_discovery)),
        *optional_fields(config, _QUIC_FIELDS),
    ))
    entries.append(block("bandwidth", *optional_fields(config, _BANDWIDTH_FIELDS)))
    entries.append(block("socks5", scalar("listen", quoted(f"{listen_host}:{port}"))))

    return render_document(entries)
