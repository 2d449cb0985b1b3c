import asyncio
from typing import List
import aiohttp
from .models import Hysteria2Config
from .parser import ConfigParser


class SubscriptionError(Exception):
    """Subscription could not be downloaded"""
    pass


async def fetch_subscription(url: str, timeout: float = 15) -> List[Hysteria2Config]:
    """
    Downloads a subscription (plain or base64 list of share links) and returns its Hysteria2 entries.
    """
    try:
        async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=timeout)) as session:
            async with session.get(url) as resp:
                if resp.status != 200:
                    raise SubscriptionError(f"HTTP {resp.status} from {url}")
                body = await resp.text()
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        raise SubscriptionError(f"Failed to fetch {url}: {e}") from e
    return ConfigParser.parse_text(body)
