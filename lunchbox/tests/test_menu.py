from __future__ import annotations

import json
import threading
from unittest.mock import patch

import httpx

from lunchbox.enrichment.config import EnrichmentConfig
from lunchbox.enrichment.menu import (
    enrich_candidates,
    extract_menu_from_website,
    fetch_website_text,
    html_to_text,
)
from lunchbox.enrichment.models import Dish, MenuData, MenuExtractResponse
from lunchbox.llm.config import ProxyConfig
from lunchbox.recommendations.cache import clear_cache
from lunchbox.recommendations.models import CandidateVenue

PROXY_CONFIG = ProxyConfig(gemini_api_key="g-key")

MENU_PAGE = (
    "<html><head><style>.x { color: red; }</style></head><body>"
    "<nav>Home | About</nav><header>Logo</header>"
    "<h1>Lunch Menu</h1><script>track();</script>"
    "<p>Tonkotsu Ramen &amp; Gyoza: rich pork broth, chashu, soft egg. 14.50</p>"
    "<p>Spicy Miso Ramen: fermented bean paste, minced pork, chili oil. 15.00</p>"
    "<footer>Impressum</footer></body></html>"
)

EXTRACTED = {
    "dishes": [{"name": "Tonkotsu Ramen", "price": "14.50"}, {"name": ""}, {"name": "Spicy Miso Ramen"}],
    "cuisineType": "Japanese",
    "specialties": ["Tonkotsu Ramen"],
    "rawTextSample": "Tonkotsu Ramen & Gyoza",
}


def _client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


def _site_and_model(page: str = MENU_PAGE, content_type: str = "text/html; charset=utf-8"):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "generativelanguage.googleapis.com":
            reply = {"candidates": [{"content": {"parts": [{"text": json.dumps(EXTRACTED)}]}}]}
            return httpx.Response(200, json=reply)
        return httpx.Response(200, content=page.encode(), headers={"content-type": content_type})

    return _client(handler)


def test_html_to_text_drops_boilerplate_blocks():
    text = html_to_text(MENU_PAGE, 15000)

    assert text.startswith("Lunch Menu Tonkotsu Ramen & Gyoza")
    assert "track()" not in text
    assert "Home" not in text
    assert "Impressum" not in text
    assert "color" not in text


def test_html_to_text_caps_length():
    assert len(html_to_text("<p>" + "a" * 500 + "</p>", 100)) == 100


def test_fetch_refuses_non_http_scheme():
    assert fetch_website_text("ftp://example.com/menu") is None
    assert fetch_website_text("javascript:alert(1)") is None


def test_fetch_rejects_non_text_content():
    client = _site_and_model(content_type="application/pdf")
    assert fetch_website_text("https://ramen.example", http_client=client) is None


def test_fetch_rejects_error_status():
    client = _client(lambda request: httpx.Response(404))
    assert fetch_website_text("https://ramen.example", http_client=client) is None


def test_extract_menu_from_website():
    result = extract_menu_from_website(
        "https://ramen.example/menu",
        "Ramen Ya",
        proxy_config=PROXY_CONFIG,
        http_client=_site_and_model(),
    )

    assert result.success is True
    assert result.content_length > 100
    assert [d.name for d in result.data.dishes] == ["Tonkotsu Ramen", "Spicy Miso Ramen"]
    assert result.data.cuisine_type == "Japanese"
    assert result.data.specialties == ["Tonkotsu Ramen"]


def test_extract_menu_short_page_is_unsuccessful():
    result = extract_menu_from_website(
        "https://ramen.example",
        proxy_config=PROXY_CONFIG,
        http_client=_site_and_model(page="<p>Closed</p>"),
    )

    assert result.success is False
    assert result.message == "Could not extract content from website"
    assert result.data.dishes == []


def test_extract_menu_model_failure_yields_empty_data():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "generativelanguage.googleapis.com":
            return httpx.Response(500)
        return httpx.Response(200, html=MENU_PAGE)

    result = extract_menu_from_website(
        "https://ramen.example", "Ramen Ya", proxy_config=PROXY_CONFIG, http_client=_client(handler)
    )

    assert result.success is True
    assert result.data == MenuData()


@patch("lunchbox.enrichment.menu.extract_menu_from_website")
def test_enrich_candidates_merges_highlights(mock_extract):
    clear_cache()
    mock_extract.return_value = MenuExtractResponse(
        success=True,
        data=MenuData(specialties=["Tonkotsu Ramen"], dishes=[Dish(name="Gyoza"), Dish(name="Tonkotsu Ramen")]),
    )
    candidates = [
        CandidateVenue(place_id="p1", name="Ramen Ya", website="https://ramen.example"),
        CandidateVenue(place_id="p2", name="No Site"),
    ]

    enriched = enrich_candidates(candidates, proxy_config=PROXY_CONFIG)

    assert [c.place_id for c in enriched] == ["p1", "p2"]
    assert enriched[0].menu_highlights == ["Tonkotsu Ramen", "Gyoza"]
    assert enriched[1].menu_highlights == []
    mock_extract.assert_called_once()


@patch("lunchbox.enrichment.menu.extract_menu_from_website")
def test_enrich_candidates_uses_cached_menu(mock_extract):
    clear_cache()
    mock_extract.return_value = MenuExtractResponse(success=True, data=MenuData(specialties=["Pho"]))
    candidates = [CandidateVenue(place_id="p1", name="Pho House", website="https://pho.example")]

    enrich_candidates(candidates, proxy_config=PROXY_CONFIG)
    enriched = enrich_candidates(candidates, proxy_config=PROXY_CONFIG)

    assert enriched[0].menu_highlights == ["Pho"]
    assert mock_extract.call_count == 1


@patch("lunchbox.enrichment.menu.extract_menu_from_website")
def test_enrich_candidates_abandons_stragglers(mock_extract):
    clear_cache()
    release = threading.Event()

    def slow_extract(url, name, config, proxy_config):
        if "slow" in url:
            release.wait(2)
        return MenuExtractResponse(success=True, data=MenuData(specialties=[f"{name} Special"]))

    mock_extract.side_effect = slow_extract
    candidates = [
        CandidateVenue(place_id="fast", name="Fast", website="https://fast.example"),
        CandidateVenue(place_id="slow", name="Slow", website="https://slow.example"),
    ]

    try:
        enriched = enrich_candidates(candidates, EnrichmentConfig(deadline=0.5), PROXY_CONFIG)
    finally:
        release.set()

    assert enriched[0].menu_highlights == ["Fast Special"]
    assert enriched[1].menu_highlights == []
