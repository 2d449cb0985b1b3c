import urllib.parse
from .models import Hysteria2Config
from .utils import url_safe, wrap_uri


def to_uri(config: Hysteria2Config, scheme: str = "hysteria2") -> str:
    """
    Builds the share link for a config.
    Only the first port of a hop range is encoded, chained setups need one concrete port.
    Raises ValueError if that port is not numeric.
    """
    port = config.first_port()

    userinfo = ""
    if config.auth.strip():
        parts = config.auth.split(":")
        if len(parts) == 2:
            # Same split as the hysteria client applies to user:pass auth
            userinfo = f"{url_safe(parts[0])}:{url_safe(parts[1])}@"
        else:
            userinfo = f"{url_safe(config.auth)}@"

    params = []
    if config.sni.strip():
        params.append(("sni", config.sni))
    if config.allow_insecure:
        params.append(("insecure", "1"))
    if config.pin_sha256.strip():
        params.append(("pinSHA256", config.pin_sha256))
    if config.obfs.strip():
        params.append(("obfs", "salamander"))
        params.append(("obfs-password", config.obfs))

    link = f"{scheme}://{userinfo}{wrap_uri(config.server_address, port)}"
    if params:
        link += "?" + urllib.parse.urlencode(params, quote_via=urllib.parse.quote)
    if config.name.strip():
        link += "#" + url_safe(config.name)
    return link
