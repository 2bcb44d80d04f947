"""Read-only web lookups: URL fetch, arXiv search and Wikipedia summaries.

``fetch_url`` only contacts allowlisted hostnames over HTTP(S), refuses any
host that resolves to a private or reserved address, and never follows
redirects.
"""

import asyncio
import ipaddress
import logging
import re
import socket
import xml.etree.ElementTree as ET
from urllib.parse import quote, urlparse

import httpx

from ravenmind.tools.base import ToolContext, ToolResult
from ravenmind.tools.registry import tool

logger = logging.getLogger(__name__)

DEFAULT_ALLOWLIST = frozenset(
    {
        "en.wikipedia.org",
        "www.wikipedia.org",
        "arxiv.org",
        "export.arxiv.org",
        "api.duckduckgo.com",
        "github.com",
        "raw.githubusercontent.com",
        "docs.python.org",
        "developer.mozilla.org",
        "stackoverflow.com",
    }
)

USER_AGENT = "Mozilla/5.0 (compatible; ravenmind/0.1)"
REQUEST_TIMEOUT = 30.0
MAX_URL_LENGTH = 2048
MAX_RESPONSE_BYTES = 100 * 1024

ATOM_NS = {"atom": "http://www.w3.org/2005/Atom"}

_SCRIPT = re.compile(r"<script[^>]*>[\s\S]*?</script>", re.IGNORECASE)
_STYLE = re.compile(r"<style[^>]*>[\s\S]*?</style>", re.IGNORECASE)
_TAG = re.compile(r"<[^>]+>")
_WHITESPACE = re.compile(r"\s+")


def _strip_repeatedly(pattern: re.Pattern, text: str, replacement: str) -> str:
    # Nested or malformed tags like <scr<script>ipt> need several passes
    previous = None
    while previous != text:
        previous = text
        text = pattern.sub(replacement, text)
    return text


def strip_html(html: str) -> str:
    """Reduce an HTML document to whitespace-normalized text."""
    text = _strip_repeatedly(_SCRIPT, html, "")
    text = _strip_repeatedly(_STYLE, text, "")
    text = _strip_repeatedly(_TAG, text, " ")
    return _WHITESPACE.sub(" ", text).strip()


def is_private_address(address: str) -> bool:
    """True for loopback, private, link-local, multicast, reserved or unparsable addresses."""
    try:
        ip = ipaddress.ip_address(address)
    except ValueError:
        return True
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped
    return (
        ip.is_private
        or ip.is_loopback
        or ip.is_link_local
        or ip.is_multicast
        or ip.is_reserved
        or ip.is_unspecified
        or ip in ipaddress.ip_network("100.64.0.0/10")
    )


async def resolve_host(hostname: str) -> list[str]:
    """Resolve a hostname to its IP addresses."""
    loop = asyncio.get_running_loop()
    infos = await loop.getaddrinfo(hostname, None, type=socket.SOCK_STREAM)
    return [info[4][0] for info in infos]


def _is_ip_literal(hostname: str) -> bool:
    try:
        ipaddress.ip_address(hostname)
        return True
    except ValueError:
        return False


@tool(description="Fetch the text content of a web page on a trusted documentation or reference site")
async def fetch_url(ctx: ToolContext, url: str) -> ToolResult:
    """Fetch a URL and return its text.

    Args:
        url: The URL to fetch
    """
    url = (url or "").strip()
    if not url:
        return ToolResult.fail("URL is required")
    if len(url) > MAX_URL_LENGTH:
        return ToolResult.fail("URL is too long")

    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        return ToolResult.fail("Only HTTP/HTTPS URLs are supported")

    hostname = parsed.hostname.lower()
    allowlist = set(ctx.config.fetch_allowlist) if ctx.config else DEFAULT_ALLOWLIST
    if hostname not in allowlist:
        return ToolResult.fail(
            f'Fetching from "{hostname}" is not allowed. Only specific trusted domains are permitted.'
        )

    if _is_ip_literal(hostname):
        addresses = [hostname]
    else:
        try:
            addresses = await resolve_host(hostname)
        except OSError:
            return ToolResult.fail("Failed to resolve URL hostname.")
    if not addresses or any(is_private_address(a) for a in addresses):
        return ToolResult.fail("Fetching URLs to private or internal networks is not allowed.")

    max_chars = ctx.config.fetch_max_chars if ctx.config else 8000
    async with httpx.AsyncClient(
        timeout=REQUEST_TIMEOUT,
        follow_redirects=False,
        headers={"User-Agent": USER_AGENT},
    ) as client:
        response = await client.get(url)

    if response.is_redirect:
        return ToolResult.fail("The URL redirects elsewhere; fetch the final URL directly.")
    if response.status_code >= 400:
        return ToolResult.fail(f"Request failed with status {response.status_code}")

    body = response.content[:MAX_RESPONSE_BYTES].decode(response.encoding or "utf-8", errors="replace")
    content_type = response.headers.get("content-type", "")
    text = body if "json" in content_type or "text/plain" in content_type else strip_html(body)
    return ToolResult.ok(text[:max_chars])


@tool(description="Search for academic papers on arXiv. Use for scientific or technical research queries.")
async def search_arxiv(query: str, max_results: int = 5) -> ToolResult:
    """Search arXiv.

    Args:
        query: Search query for papers
        max_results: Maximum results (default: 5)
    """
    query = (query or "").strip()
    if not query:
        return ToolResult.fail("Search query cannot be empty.")
    if len(query) > 300:
        return ToolResult.fail("Search query is too long. Please shorten it.")
    max_results = min(max(1, int(max_results or 5)), 20)

    async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT, headers={"User-Agent": USER_AGENT}) as client:
        response = await client.get(
            "https://export.arxiv.org/api/query",
            params={
                "search_query": f"all:{query}",
                "start": 0,
                "max_results": max_results,
                "sortBy": "relevance",
                "sortOrder": "descending",
            },
        )
        response.raise_for_status()

    try:
        root = ET.fromstring(response.text)
    except ET.ParseError:
        return ToolResult.fail("Could not parse arXiv response.")

    entries = []
    for entry in root.findall("atom:entry", ATOM_NS)[:max_results]:
        title = _WHITESPACE.sub(" ", entry.findtext("atom:title", "", ATOM_NS)).strip()
        summary = _WHITESPACE.sub(" ", entry.findtext("atom:summary", "", ATOM_NS)).strip()
        link = entry.findtext("atom:id", "", ATOM_NS).strip()
        if not title:
            continue
        info = f"Title: {title}"
        if link:
            info += f"\nLink: {link}"
        if summary:
            info += f"\nAbstract: {summary[:300]}..."
        entries.append(info)

    if not entries:
        return ToolResult.ok("No papers found for this query.")
    return ToolResult.ok(f"Found {len(entries)} papers:\n\n" + "\n\n---\n\n".join(entries))


@tool(description="Get a summary of a Wikipedia article on a topic.")
async def wikipedia_summary(topic: str) -> ToolResult:
    """Look up a Wikipedia article summary.

    Args:
        topic: The topic to look up on Wikipedia
    """
    topic = (topic or "").strip()
    if not topic:
        return ToolResult.fail("Topic cannot be empty.")
    if len(topic) > 200:
        return ToolResult.fail("Topic is too long. Please shorten it.")
    if ".." in topic or "/" in topic or "\\" in topic:
        return ToolResult.fail("Topic contains invalid characters.")

    async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT, headers={"User-Agent": USER_AGENT}) as client:
        response = await client.get(
            f"https://en.wikipedia.org/api/rest_v1/page/summary/{quote(topic, safe='')}"
        )

    if response.status_code == 404:
        return ToolResult.fail(f'No Wikipedia article found for "{topic}"')
    response.raise_for_status()

    data = response.json()
    if data.get("type") == "disambiguation":
        return ToolResult.ok(f'"{topic}" has multiple meanings. Try being more specific.')

    result = f"# {data.get('title') or topic}\n\n{data.get('extract') or 'No summary available.'}"
    page = data.get("content_urls", {}).get("desktop", {}).get("page")
    if page:
        result += f"\n\nRead more: {page}"
    return ToolResult.ok(result)
