import hashlib


STALE_WHILE_REVALIDATE_SECONDS = 60


def sha1_text(s: str) -> str:
    return hashlib.sha1(s.encode("utf-8")).hexdigest()


def cache_key(url: str, prefix: str = "upstream") -> str:
    """Key for a resolved upstream URL.

    Identity is textual: the same parameters serialized in a different order
    produce a different key.
    """
    return f"{prefix}:{sha1_text(url)}"


def cache_control(ttl_seconds: int) -> str:
    return (
        f"public, max-age={ttl_seconds}, s-maxage={ttl_seconds}, "
        f"stale-while-revalidate={STALE_WHILE_REVALIDATE_SECONDS}"
    )
