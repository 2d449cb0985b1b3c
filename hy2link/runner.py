import asyncio
import os
import platform
import shutil
import socket
import subprocess
import tempfile
import time
import urllib.parse
from typing import Callable, List, Optional, Tuple
import aiohttp
from rich.console import Console
from .models import Hysteria2Config
from .renderer import build_client_config
from .settings import Settings

RELEASE_URL = "https://github.com/apernet/hysteria/releases/download/{tag}/{asset}"

SOCKS5_GREETING = b"\x05\x01\x00"  # version 5, one method, no auth
SOCKS5_ACCEPTED = b"\x05\x00"


def find_free_port(host: str = "127.0.0.1") -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind((host, 0))
        return s.getsockname()[1]


class ClientRunner:
    """Drives the external hysteria client with rendered configs."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or Settings.from_env()
        self.console = Console(stderr=True)

    @property
    def client_path(self) -> str:
        return str(self.settings.client_path)

    @staticmethod
    def _get_platform_asset() -> Optional[str]:
        system = platform.system().lower()
        machine = platform.machine().lower()

        if machine in ("x86_64", "amd64"):
            arch = "amd64"
        elif machine in ("aarch64", "arm64"):
            arch = "arm64"
        else:
            return None

        if system in ("linux", "darwin", "freebsd"):
            return f"hysteria-{system}-{arch}"
        if system == "windows":
            return f"hysteria-windows-{arch}.exe"
        return None

    def _get_platform_url(self) -> Optional[str]:
        asset = self._get_platform_asset()
        if not asset:
            return None
        tag = urllib.parse.quote(self.settings.client_version, safe="")
        return RELEASE_URL.format(tag=tag, asset=asset)

    async def ensure_client(self) -> bool:
        if os.path.exists(self.client_path):
            return True

        url = self._get_platform_url()
        if not url:
            self.console.print("[red]❌ Unsupported platform for the hysteria client[/red]")
            return False

        self.console.print("[cyan]📥 Downloading hysteria client (first run only)...[/cyan]")
        try:
            os.makedirs(os.path.dirname(self.client_path), exist_ok=True)
            async with aiohttp.ClientSession() as session:
                async with session.get(url) as resp:
                    if resp.status != 200:
                        self.console.print(f"[red]❌ Download failed: HTTP {resp.status}[/red]")
                        return False
                    data = await resp.read()
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            self.console.print(f"[red]❌ Failed to download client: {e}[/red]")
            return False

        with open(self.client_path, 'wb') as f:
            f.write(data)
        os.chmod(self.client_path, 0o755)
        self.console.print(f"[green]✓ Client ready ({len(data) // 1024 // 1024}MB)[/green]")
        return True

    def start(self, config: Hysteria2Config, port: int, work_dir: str) -> subprocess.Popen:
        """
        Writes the rendered config (and CA file) into work_dir and spawns the client.
        Every invocation needs its own work_dir so CA files never collide.
        """
        if not config.server_address.strip():
            raise ValueError("config has no server address")

        text = build_client_config(
            config,
            port,
            cache_file=lambda: os.path.join(work_dir, "ca.pem"),
            listen_host=self.settings.listen_host,
        )
        config_path = os.path.join(work_dir, "config.yaml")
        with open(config_path, 'w', encoding='utf-8') as f:
            f.write(text)

        return subprocess.Popen(
            [self.client_path, "client", "-c", config_path],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )

    async def wait_for_socks(self, port: int, timeout: float, process: Optional[subprocess.Popen] = None) -> bool:
        """
        Polls the local listener until it answers a SOCKS5 greeting.
        Gives up early when the client process exits.
        """
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if process is not None and process.poll() is not None:
                return False
            try:
                reader, writer = await asyncio.wait_for(
                    asyncio.open_connection(self.settings.listen_host, port), timeout=1
                )
            except (OSError, asyncio.TimeoutError):
                await asyncio.sleep(0.2)
                continue
            try:
                writer.write(SOCKS5_GREETING)
                await writer.drain()
                reply = await asyncio.wait_for(reader.readexactly(2), timeout=1)
                return reply == SOCKS5_ACCEPTED
            except (OSError, asyncio.TimeoutError, asyncio.IncompleteReadError):
                return False
            finally:
                writer.close()
                try:
                    await writer.wait_closed()
                except OSError:
                    pass  # peer already reset the connection
        return False

    @staticmethod
    def stop(process: subprocess.Popen):
        process.terminate()
        try:
            process.wait(timeout=1)
        except subprocess.TimeoutExpired:
            process.kill()
            process.wait()

    async def verify_config(self, config: Hysteria2Config, timeout: float = 5) -> Tuple[bool, float]:
        """
        Starts the client for one config and waits for its SOCKS5 listener.
        Returns: (is_valid, startup_latency_ms)
        """
        port = find_free_port(self.settings.listen_host)
        work_dir = tempfile.mkdtemp(prefix="hy2link-")
        process = None
        try:
            start = time.monotonic()
            process = self.start(config, port, work_dir)
            if await self.wait_for_socks(port, timeout, process):
                return True, (time.monotonic() - start) * 1000
            return False, 0
        except (OSError, subprocess.SubprocessError):
            # Broken client binary or unwritable work dir
            return False, 0
        finally:
            if process:
                self.stop(process)
            shutil.rmtree(work_dir, ignore_errors=True)

    async def verify_all(
        self,
        configs: List[Hysteria2Config],
        concurrency: int = 5,
        timeout: float = 5,
        progress_callback: Optional[Callable[[Hysteria2Config, bool, float], None]] = None,
    ) -> List[Tuple[Hysteria2Config, bool, float]]:
        """
        Verifies configs in parallel. Results keep the input order.
        """
        sem = asyncio.Semaphore(concurrency)

        async def verify_one(config):
            async with sem:
                is_valid, latency = await self.verify_config(config, timeout=timeout)
            if progress_callback:
                progress_callback(config, is_valid, latency)
            return config, is_valid, latency

        return await asyncio.gather(*(verify_one(c) for c in configs))
