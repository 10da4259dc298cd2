from __future__ import annotations

import html
import logging
import re
from concurrent.futures import ThreadPoolExecutor, wait
from urllib.parse import urlparse

import httpx
from pydantic import ValidationError as PydanticValidationError

from ..errors import LunchboxError, ParseError
from ..llm.config import DEFAULT_PROXY_CONFIG, ProxyConfig
from ..llm.models import GenerationConfig
from ..llm.proxies import JSON_MIME_TYPE, generate_gemini
from ..llm.schemas import parse_json
from ..recommendations.cache import PLACES, get_cache, place_key
from ..recommendations.models import CandidateVenue
from .config import DEFAULT_ENRICHMENT_CONFIG, EnrichmentConfig
from .models import MenuData, MenuExtractResponse

logger = logging.getLogger(__name__)

_DROP_BLOCKS_RE = re.compile(
    r"<(script|style|nav|footer|header)[^>]*>.*?</\1>", re.IGNORECASE | re.DOTALL
)
_TAG_RE = re.compile(r"<[^>]+>")
_SPACE_RE = re.compile(r"\s+")

MENU_EXTRACTION_PROMPT = """\
You are a menu extraction specialist. Analyze the following website content \
from "{name}" and extract menu information.

WEBSITE CONTENT:
{content}

TASK:
1. Identify every specific dish name (actual dishes like "Tonkotsu Ramen", not \
categories like "appetizers").
2. Extract descriptions or ingredients mentioned for those dishes.
3. Note prices where visible.
4. Identify the cuisine type.
5. List signature items: dishes mentioned repeatedly or marked popular or famous.

Return a JSON object:
{{"dishes": [{{"name": "...", "description": "...", "price": "...", "category": "..."}}], \
"cuisineType": "...", "specialties": ["..."], "rawTextSample": "a 100-char sample of menu text"}}

If no menu data is found return \
{{"dishes": [], "cuisineType": null, "specialties": [], "rawTextSample": null}}"""


def html_to_text(markup: str, limit: int) -> str:
    text = _DROP_BLOCKS_RE.sub(" ", markup)
    text = _TAG_RE.sub(" ", text)
    text = html.unescape(text)
    return _SPACE_RE.sub(" ", text).strip()[:limit]


def fetch_website_text(
    url: str,
    config: EnrichmentConfig = DEFAULT_ENRICHMENT_CONFIG,
    http_client: httpx.Client | None = None,
) -> str | None:
    """Return readable page text, or None when the page is unusable."""
    if urlparse(url).scheme not in ("http", "https"):
        logger.warning("Refusing to fetch non-http URL %s", url)
        return None

    client = http_client or httpx.Client(timeout=config.fetch_timeout, follow_redirects=True)
    try:
        response = client.get(
            url,
            headers={
                "User-Agent": config.user_agent,
                "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
                "Accept-Language": "en-US,en;q=0.9,de;q=0.8",
            },
        )
    except httpx.TimeoutException:
        logger.warning("Timeout fetching %s", url)
        return None
    except httpx.HTTPError as exc:
        logger.warning("Error fetching %s: %s", url, type(exc).__name__)
        return None
    finally:
        if http_client is None:
            client.close()

    if response.is_error:
        logger.warning("Failed to fetch %s: %s", url, response.status_code)
        return None

    content_type = response.headers.get("content-type", "")
    if "text/html" not in content_type and "text/plain" not in content_type:
        logger.warning("Non-HTML content type for %s: %s", url, content_type)
        return None

    return html_to_text(response.text, config.max_content_chars)


def _menu_from_payload(payload: object) -> MenuData:
    if not isinstance(payload, dict):
        return MenuData()
    dishes = [d for d in payload.get("dishes") or [] if isinstance(d, dict) and d.get("name")]
    try:
        return MenuData.model_validate({**payload, "dishes": dishes})
    except PydanticValidationError:
        logger.warning("Menu extraction returned an unexpected shape")
        return MenuData()


def extract_menu(
    content: str,
    restaurant_name: str,
    proxy_config: ProxyConfig = DEFAULT_PROXY_CONFIG,
    http_client: httpx.Client | None = None,
) -> MenuData:
    """Model-backed extraction; any failure yields empty menu data."""
    prompt = MENU_EXTRACTION_PROMPT.format(name=restaurant_name, content=content)
    try:
        text = generate_gemini(
            proxy_config.menu_model,
            prompt,
            GenerationConfig(temperature=0.2, response_mime_type=JSON_MIME_TYPE),
            proxy_config,
            http_client,
        )
        return _menu_from_payload(parse_json(text))
    except ParseError as exc:
        logger.warning("Menu extraction for %s unparseable: %s", restaurant_name, exc.details)
    except LunchboxError as exc:
        logger.warning("Menu extraction for %s failed: %s", restaurant_name, exc)
    return MenuData()


def extract_menu_from_website(
    website_url: str,
    restaurant_name: str | None = None,
    config: EnrichmentConfig = DEFAULT_ENRICHMENT_CONFIG,
    proxy_config: ProxyConfig = DEFAULT_PROXY_CONFIG,
    http_client: httpx.Client | None = None,
) -> MenuExtractResponse:
    name = restaurant_name or "Restaurant"
    logger.info("Fetching menu from %s for %s", website_url, name)

    content = fetch_website_text(website_url, config, http_client)
    if not content or len(content) < config.min_content_chars:
        logger.info("No usable content from %s", website_url)
        return MenuExtractResponse(
            success=False,
            message="Could not extract content from website",
        )

    menu = extract_menu(content, name, proxy_config, http_client)
    logger.info("Extracted %d dishes from %s", len(menu.dishes), name)
    return MenuExtractResponse(success=True, data=menu, content_length=len(content))


# ---------------------------------------------------------------------------
# Candidate enrichment
# ---------------------------------------------------------------------------


def _highlights(menu: MenuData, limit: int) -> list[str]:
    names = list(menu.specialties) + [d.name for d in menu.dishes]
    unique = list(dict.fromkeys(n.strip() for n in names if n and n.strip()))
    return unique[:limit]


def _menu_for(
    candidate: CandidateVenue,
    config: EnrichmentConfig,
    proxy_config: ProxyConfig,
) -> MenuData:
    cache = get_cache(PLACES)
    key = place_key(f"menu:{candidate.place_id}")
    cached = cache.get(key)
    if cached is not None:
        return MenuData.model_validate(cached)

    result = extract_menu_from_website(candidate.website, candidate.name, config, proxy_config)
    if result.success:
        cache.put(key, result.data.model_dump())
    return result.data


def enrich_candidates(
    candidates: list[CandidateVenue],
    config: EnrichmentConfig = DEFAULT_ENRICHMENT_CONFIG,
    proxy_config: ProxyConfig = DEFAULT_PROXY_CONFIG,
) -> list[CandidateVenue]:
    """
    Attach menu highlights to candidates that have a website.

    Extractions run on their own thread pool with their own deadline; only
    those finished in time are merged and the rest are abandoned. Candidates
    are returned in their original order, enriched or not.
    """
    targets = [c for c in candidates if c.website and not c.menu_highlights][: config.max_venues]
    if not targets:
        return candidates

    executor = ThreadPoolExecutor(max_workers=config.max_workers, thread_name_prefix="menu-enrich")
    futures = {executor.submit(_menu_for, c, config, proxy_config): c.place_id for c in targets}
    done, pending = wait(futures, timeout=config.deadline)
    executor.shutdown(wait=False, cancel_futures=True)

    highlights: dict[str, list[str]] = {}
    for future in done:
        place_id = futures[future]
        try:
            menu = future.result()
        except Exception:
            logger.warning("Menu enrichment for %s failed", place_id, exc_info=True)
            continue
        found = _highlights(menu, config.max_highlights)
        if found:
            highlights[place_id] = found

    if pending:
        logger.info("Menu enrichment deadline passed, %d venues skipped", len(pending))

    return [
        c.model_copy(update={"menu_highlights": highlights[c.place_id]}) if c.place_id in highlights else c
        for c in candidates
    ]
