import argparse
import asyncio
import json
import os
import shutil
import sys
import tempfile
from rich.console import Console
from rich.table import Table
from tqdm import tqdm
from .encoder import to_uri
from .models import Hysteria2Config
from .parser import ConfigParser, LinkParseError
from .qr import generate_qr_ascii
from .renderer import build_client_config
from .runner import ClientRunner, find_free_port
from .settings import Settings
from .subscription import SubscriptionError, fetch_subscription

console = Console()


def _decode(link: str) -> Hysteria2Config:
    config = ConfigParser.parse_link(link.strip())
    if config is None:
        raise LinkParseError("not a hysteria2:// or hy2:// link")
    return config


def cmd_decode(args, settings):
    config = _decode(args.link)
    if args.json:
        console.print_json(json.dumps(config.to_dict()))
        return

    table = Table(title=str(config), border_style="dim white")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    for key, value in config.to_dict().items():
        table.add_row(key, str(value))
    console.print(table)


def cmd_encode(args, settings):
    with open(args.file, 'r', encoding='utf-8') as f:
        config = Hysteria2Config.from_dict(json.load(f))
    console.print(to_uri(config, scheme=args.scheme), soft_wrap=True)


def cmd_render(args, settings):
    config = _decode(args.link)
    ca_dir = args.ca_dir or str(settings.cache_dir)

    def cache_file():
        os.makedirs(ca_dir, exist_ok=True)
        return os.path.join(ca_dir, f"ca-{args.port}.pem")

    text = build_client_config(config, args.port, cache_file=cache_file, listen_host=settings.listen_host)
    if args.output:
        with open(args.output, 'w', encoding='utf-8') as f:
            f.write(text)
        console.print(f"[green]✓ Wrote {args.output}[/green]")
    else:
        sys.stdout.write(text)


def cmd_qr(args, settings):
    config = _decode(args.link)
    link = to_uri(config)
    text, width, mode = generate_qr_ascii(link, console_width=console.width)
    if mode is None:
        console.print(f"[red]{text}[/red]")
        return 1
    console.print(text, highlight=False)
    console.print(f"[dim]{config}[/dim]")


async def _load_configs(args):
    if args.url:
        return await fetch_subscription(args.url, timeout=args.timeout * 3)
    return ConfigParser.parse_file(args.file)


async def cmd_check(args, settings):
    configs = await _load_configs(args)
    usable = [c for c in configs if c.server_address.strip()]
    if len(usable) != len(configs):
        console.print(f"[yellow]Skipping {len(configs) - len(usable)} configs without a server address[/yellow]")
    console.print(f"Loaded {len(usable)} Hysteria2 configurations.")
    if not usable:
        return

    runner = ClientRunner(settings)
    if not await runner.ensure_client():
        return 1

    with tqdm(total=len(usable), desc="Verifying", unit="cfg") as bar:
        results = await runner.verify_all(
            usable,
            concurrency=args.concurrency,
            timeout=args.timeout,
            progress_callback=lambda config, ok, latency: bar.update(1),
        )

    results = sorted(results, key=lambda r: (not r[1], r[2]))
    table = Table(title="Verification Results", border_style="dim white")
    table.add_column("Status", width=8)
    table.add_column("Startup", justify="right")
    table.add_column("Server")
    table.add_column("Name", no_wrap=True, overflow="ellipsis")
    up = 0
    for config, ok, latency in results:
        if ok:
            up += 1
        table.add_row(
            "[green]UP[/green]" if ok else "[red]DOWN[/red]",
            f"{latency:.0f}ms" if ok else "-",
            f"{config.server_address}:{config.server_ports}",
            config.name,
        )
    console.print(table)
    console.print(f"Total: {len(results)}, UP: {up}, DOWN: {len(results) - up}")


async def cmd_run(args, settings):
    config = _decode(args.link)
    runner = ClientRunner(settings)
    if not await runner.ensure_client():
        return 1

    port = args.port or find_free_port(settings.listen_host)
    work_dir = tempfile.mkdtemp(prefix="hy2link-")
    process = None
    try:
        process = runner.start(config, port, work_dir)
        if not await runner.wait_for_socks(port, args.timeout, process):
            console.print("[red]❌ Client did not come up[/red]")
            return 1
        console.print(f"[green]✓ SOCKS5 proxy for {config} listening on {settings.listen_host}:{port}[/green]")
        console.print("[dim]Press Ctrl+C to stop.[/dim]")
        while process.poll() is None:
            await asyncio.sleep(1)
        console.print(f"[red]Client exited with status {process.returncode}[/red]")
        return 1
    finally:
        if process and process.poll() is None:
            runner.stop(process)
        shutil.rmtree(work_dir, ignore_errors=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="hy2link", description="Hysteria2 share link toolkit")
    parser.add_argument("--env-file", type=str, default=None, help="Path to a .env file with HY2_* settings")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("decode", help="Show the fields of a share link")
    p.add_argument("link")
    p.add_argument("--json", action="store_true", help="Print persisted-settings JSON")
    p.set_defaults(func=cmd_decode)

    p = sub.add_parser("encode", help="Build a share link from persisted-settings JSON")
    p.add_argument("file")
    p.add_argument("--scheme", default="hysteria2", choices=["hysteria2", "hy2"])
    p.set_defaults(func=cmd_encode)

    p = sub.add_parser("render", help="Render the hysteria client config for a share link")
    p.add_argument("link")
    p.add_argument("--port", type=int, default=1080, help="Local SOCKS5 port")
    p.add_argument("--ca-dir", type=str, default=None, help="Directory for the inline CA certificate")
    p.add_argument("-o", "--output", type=str, default=None, help="Write to file instead of stdout")
    p.set_defaults(func=cmd_render)

    p = sub.add_parser("qr", help="Print a share link as a terminal QR code")
    p.add_argument("link")
    p.set_defaults(func=cmd_qr)

    p = sub.add_parser("check", help="Verify a list of links with the hysteria client")
    source = p.add_mutually_exclusive_group(required=True)
    source.add_argument("--file", type=str, help="File with one link per line")
    source.add_argument("--url", type=str, help="Subscription URL")
    p.add_argument("--concurrency", type=int, default=5, help="Clients running at once")
    p.add_argument("--timeout", type=float, default=5, help="Seconds to wait for each client")
    p.set_defaults(func=cmd_check)

    p = sub.add_parser("run", help="Run the hysteria client for a share link")
    p.add_argument("link")
    p.add_argument("--port", type=int, default=0, help="Local SOCKS5 port. Default: any free port")
    p.add_argument("--timeout", type=float, default=10, help="Seconds to wait for the client")
    p.set_defaults(func=cmd_run)

    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    settings = Settings.from_env(args.env_file)
    try:
        result = args.func(args, settings)
        if asyncio.iscoroutine(result):
            result = asyncio.run(result)
    except KeyboardInterrupt:
        console.print("\nAborted.")
        return 130
    except (ValueError, OSError, SubscriptionError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1
    return result or 0


if __name__ == "__main__":
    sys.exit(main())
