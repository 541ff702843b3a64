import time
from urllib.parse import urlencode, urlsplit


def now() -> float:
    return time.perf_counter()


def build_url(endpoint: str, apikey: str | None = None) -> str:
    if not apikey:
        return endpoint
    sep = "&" if urlsplit(endpoint).query else "?"
    return f"{endpoint}{sep}{urlencode({'apikey': apikey})}"
