from dataclasses import dataclass, fields
from typing import Any, Dict

# Persisted-settings keys, in the camelCase form the share apps store them
_DICT_KEYS = {
    "name": "name",
    "server_address": "serverAddress",
    "server_ports": "serverPorts",
    "auth": "auth",
    "sni": "sni",
    "allow_insecure": "allowInsecure",
    "pin_sha256": "pinSHA256",
    "obfs": "obfs",
    "ca_text": "caText",
    "hop_interval": "hopInterval",
    "disable_mtu_discovery": "disableMtuDiscovery",
    "init_stream_receive_window": "initStreamReceiveWindow",
    "max_stream_receive_window": "maxStreamReceiveWindow",
    "init_conn_receive_window": "initConnReceiveWindow",
    "max_conn_receive_window": "maxConnReceiveWindow",
    "upload_mbps": "uploadMbps",
    "download_mbps": "downloadMbps",
    "final_address": "finalAddress",
    "final_port": "finalPort",
}

_TRUE_VALUES = ("1", "true")
_FALSE_VALUES = ("0", "false")


def _to_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ValueError(f"{key}: expected a boolean, got {value!r}")


@dataclass
class Hysteria2Config:
    name: str = ""
    server_address: str = ""
    server_ports: str = "443"  # single port, "1000-2000" range or "1000,2000" list
    auth: str = ""  # bare token or "user:password"
    sni: str = ""
    allow_insecure: bool = False
    pin_sha256: str = ""
    obfs: str = ""  # salamander password, empty means no obfuscation
    ca_text: str = ""
    hop_interval: int = 10
    disable_mtu_discovery: bool = False
    init_stream_receive_window: int = 0
    max_stream_receive_window: int = 0
    init_conn_receive_window: int = 0
    max_conn_receive_window: int = 0
    upload_mbps: int = 0
    download_mbps: int = 0
    final_address: str = ""
    final_port: int = 0

    def is_hopping(self) -> bool:
        return "-" in self.server_ports or "," in self.server_ports

    def first_port(self) -> int:
        """
        First port of a hop range/list; raises ValueError on non-numeric text.
        """
        return int(self.server_ports.split(",", 1)[0].split("-", 1)[0])

    def to_dict(self) -> Dict[str, Any]:
        return {_DICT_KEYS[f.name]: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Hysteria2Config":
        kwargs = {}
        for f in fields(cls):
            key = _DICT_KEYS[f.name]
            if key in data and data[key] is not None:
                value = data[key]
                kwargs[f.name] = _to_bool(value, key) if f.type is bool else f.type(value)
        return cls(**kwargs)

    def __str__(self):
        return f"[HYSTERIA2] {self.name} ({self.server_address}:{self.server_ports})"
