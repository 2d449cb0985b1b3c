import ipaddress
import urllib.parse


def is_ip_address(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
        return True
    except ValueError:
        return False


def is_ipv6_address(value: str) -> bool:
    try:
        return isinstance(ipaddress.ip_address(value), ipaddress.IPv6Address)
    except ValueError:
        return False


def wrap_uri(host: str, port) -> str:
    """
    Joins host and port, bracketing literal IPv6 addresses.
    """
    if is_ipv6_address(host):
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def url_safe(text: str) -> str:
    return urllib.parse.quote(text, safe="")
