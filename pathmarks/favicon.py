from __future__ import annotations

import re
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple
from urllib.parse import urljoin, urlparse

import httpx
import tldextract  # type: ignore
from bs4 import BeautifulSoup  # type: ignore

from .config import Settings
from .log import get_logger
from .model import ItemType

log = get_logger(__name__)

SITE_FAVICON = "favicon.ico"
# Bundled public-suffix snapshot only; never fetch the list at runtime.
_TLD = tldextract.TLDExtract(suffix_list_urls=())
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass
class FaviconResult:
    url: str
    ok: bool
    icon_url: Optional[str]
    filename: str
    payload: bytes
    fetch_ms: int
    error: Optional[str] = None


def fetch_favicon(
    url: str,
    *,
    client: Optional[httpx.Client] = None,
    timeout_s: int = 10,
    user_agent: str = "pathmarks",
    max_bytes: int = 350_000,
) -> FaviconResult:
    """Find and download the icon of the site ``url`` belongs to.

    The site root is parsed for ``<link rel="icon">`` (then ``shortcut icon``);
    without one, ``/favicon.ico`` is tried. Errors are logged and reported in
    the result, never raised.
    """
    t0 = time.time()
    own_client = client is None
    if client is None:
        client = _new_client(timeout_s=timeout_s, user_agent=user_agent)
    try:
        base = _base_url(url)
        href = None
        r = client.get(base)
        if r.status_code == 200 and r.content:
            href = _extract_favicon_href(r.content[:max_bytes])
        else:
            log.warning("No usable page at %s (status %s)", base, r.status_code)

        if href:
            icon_url = _resolve_icon_url(href, base)
            filename = _last_segment(icon_url) or SITE_FAVICON
        else:
            icon_url = f"{base}/{SITE_FAVICON}"
            filename = SITE_FAVICON

        log.debug("Will try to fetch favicon using url %s", icon_url)
        icon = client.get(icon_url)
        icon.raise_for_status()
        payload = icon.content[:max_bytes]
        return FaviconResult(
            url=url,
            ok=bool(payload),
            icon_url=icon_url,
            filename=filename,
            payload=payload,
            fetch_ms=int((time.time() - t0) * 1000),
            error=None if payload else "empty_icon",
        )
    except (httpx.HTTPError, ValueError) as e:
        log.error("Could not get favicon from url %s: %s", url, e)
        return FaviconResult(
            url=url,
            ok=False,
            icon_url=None,
            filename="",
            payload=b"",
            fetch_ms=int((time.time() - t0) * 1000),
            error=str(e),
        )
    finally:
        if own_client:
            client.close()


def fetch_many(
    urls: List[str],
    *,
    jobs: int,
    timeout_s: int,
    user_agent: str,
    max_bytes: int,
) -> Dict[str, FaviconResult]:
    out: Dict[str, FaviconResult] = {}
    with _new_client(timeout_s=timeout_s, user_agent=user_agent) as client:

        def _one(url: str) -> Tuple[str, FaviconResult]:
            return url, fetch_favicon(url, client=client, max_bytes=max_bytes)

        with ThreadPoolExecutor(max_workers=max(1, jobs)) as ex:
            futs = [ex.submit(_one, u) for u in dict.fromkeys(urls)]
            for fut in as_completed(futs):
                url, res = fut.result()
                out[url] = res
    return out


def favicon_filename(page_url: str, icon_name: str) -> str:
    """``https://www.github.com/x`` + ``favicon.svg`` -> ``github.com_favicon.svg``."""
    ext = _TLD(page_url)
    if ext.domain and ext.suffix:
        site = f"{ext.domain}.{ext.suffix}"
    else:
        site = ext.domain or (urlparse(page_url).hostname or "site")
    name = _UNSAFE_CHARS.sub("_", icon_name or SITE_FAVICON)
    return f"{site.lower()}_{name}"


def store_favicon(favicon_dir: Path | str, result: FaviconResult) -> Optional[str]:
    if not result.ok or not result.payload:
        return None
    target_dir = Path(favicon_dir)
    target_dir.mkdir(parents=True, exist_ok=True)
    name = favicon_filename(result.url, result.filename)
    (target_dir / name).write_bytes(result.payload)
    return name


def refresh_favicons(repo, owner: str, cfg: Settings) -> int:
    """Fetch icons for every node of ``owner`` that has none; returns how many were set.

    Fetching fans out over threads; the store is only written from the
    calling thread.
    """
    nodes = [b for b in repo.get_all(owner) if b.type == ItemType.NODE and not b.favicon and b.url]
    if not nodes:
        return 0
    log.info("Fetching favicons for %d bookmark(s) (jobs=%d)...", len(nodes), cfg.fetch_jobs)
    results = fetch_many(
        [b.url for b in nodes],
        jobs=cfg.fetch_jobs,
        timeout_s=cfg.fetch_timeout_s,
        user_agent=cfg.fetch_user_agent,
        max_bytes=cfg.fetch_max_bytes,
    )
    updated = 0
    for b in nodes:
        r = results.get(b.url)
        if r is None or not r.ok:
            continue
        filename = store_favicon(cfg.favicon_dir, r)
        if filename and repo.set_favicon(b.id, owner, filename) is not None:
            updated += 1
    log.info("Stored %d favicon(s) in %s", updated, cfg.favicon_dir)
    return updated


def _new_client(*, timeout_s: int, user_agent: str) -> httpx.Client:
    timeout = httpx.Timeout(timeout_s, connect=timeout_s)
    return httpx.Client(follow_redirects=True, headers={"User-Agent": user_agent}, timeout=timeout)


def _extract_favicon_href(content: bytes) -> Optional[str]:
    if not content:
        return None
    soup = BeautifulSoup(content, "lxml")
    scope = soup.head or soup
    for wanted in ("icon", "shortcut icon"):
        for link in scope.find_all("link"):
            rel = " ".join(x.lower() for x in (link.get("rel") or []))
            href = (link.get("href") or "").strip()
            if rel == wanted and href:
                return href
    return None


def _resolve_icon_url(href: str, base_url: str) -> str:
    # Covers "//cdn/x.png", "/assets/x.png", "./x.png" and absolute URLs.
    return urljoin(base_url + "/", href)


def _base_url(url: str) -> str:
    p = urlparse(url)
    if not p.scheme or not p.hostname:
        raise ValueError(f"not an absolute URL: {url!r}")
    return f"{p.scheme}://{p.hostname}"


def _last_segment(url: str) -> str:
    parts = [x for x in (urlparse(url).path or "").split("/") if x]
    return parts[-1] if parts else ""
