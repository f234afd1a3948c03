"""
Tests for source scrapers against stubbed upstream APIs.
"""

import httpx
import pytest

from catalogworker.errors import MissingCredentialsError
from catalogworker.harvester.scrapers import (
    CocktailDbScraper,
    OpenFoodFactsScraper,
    OpenLibraryScraper,
    PokemonTcgScraper,
    PunkApiScraper,
    ScrapeContext,
    ScryfallScraper,
    TtbColaScraper,
    UntappdScraper,
)

BEERS = [
    {"id": 1, "name": "Buzz", "abv": 4.5, "description": "A light, crisp and bitter IPA"},
    {"id": 2, "name": "Trashy Blonde", "abv": 4.1, "description": "A titillating blonde"},
    {"id": 3, "name": "Berliner Weisse", "abv": 4.2, "image_url": "https://img.test/3.png"},
]

TTB_DETAIL = """
<html><body><table>
<tr><td>Brand Name:</td><td>OLD FORESTER</td></tr>
<tr><td>Fanciful Name:</td><td>1920   PROHIBITION STYLE</td></tr>
<tr><td>Class/Type Description:</td><td>STRAIGHT BOURBON WHISKY</td></tr>
<tr><td>Origin Code:</td><td>KENTUCKY</td></tr>
<tr><td>Alcohol Content:</td><td>57.5%</td></tr>
<tr><td>Applicant:</td><td></td></tr>
</table></body></html>
"""


class TestPagedScrapers:
    """Test page/offset driven sources."""

    @pytest.mark.asyncio
    async def test_punkapi_stops_on_empty_page(self, make_fetcher, sleep):
        pages = []

        def handler(request):
            page = int(request.url.params["page"])
            pages.append(page)
            return httpx.Response(200, json=BEERS if page == 1 else [])

        records = await PunkApiScraper(make_fetcher(handler)).fetch(1000)

        assert [r["name"] for r in records] == ["Buzz", "Trashy Blonde", "Berliner Weisse"]
        assert records[0]["brand"] == "BrewDog"
        assert records[0]["external_ids"] == {"punkapi": 1}
        assert pages == [1, 2]
        assert sleep.calls == [0.3]

    @pytest.mark.asyncio
    async def test_page_cap_stops_endless_listing(self, make_fetcher):
        """A listing that never runs dry stops at max_pages."""
        pages = []

        def handler(request):
            page = int(request.url.params["page"])
            pages.append(page)
            return httpx.Response(200, json=[{"id": page, "name": f"Beer {page}"}])

        records = await PunkApiScraper(make_fetcher(handler)).fetch(10000)

        assert pages == list(range(1, PunkApiScraper.max_pages + 1))
        assert len(records) == 10

    @pytest.mark.asyncio
    async def test_malformed_items_skipped(self, make_fetcher):
        def handler(request):
            if request.url.params["page"] == "1":
                return httpx.Response(200, json=[BEERS[0], "not-a-beer", None, BEERS[1]])
            return httpx.Response(200, json=[])

        records = await PunkApiScraper(make_fetcher(handler)).fetch(100)

        assert [r["name"] for r in records] == ["Buzz", "Trashy Blonde"]

    @pytest.mark.asyncio
    async def test_unexpected_listing_shape_keeps_partial_results(self, make_fetcher):
        def handler(request):
            page = int(request.url.params["page"])
            cards = [{"name": f"Card {page}"}]
            # page 2 comes back as a bare list instead of {"data": [...]}
            return httpx.Response(200, json={"data": cards} if page == 1 else cards)

        records = await PokemonTcgScraper(make_fetcher(handler)).fetch(100)

        assert [r["name"] for r in records] == ["Card 1"]

    @pytest.mark.asyncio
    async def test_limit_truncates(self, make_fetcher):
        cards = [{"name": f"Card {i}", "set": {"name": "Base", "id": "base1"}} for i in range(250)]
        fetcher = make_fetcher(lambda request: httpx.Response(200, json={"data": cards}))

        records = await PokemonTcgScraper(fetcher).fetch(10)

        assert len(records) == 10
        assert records[0]["set_id"] == "base1"
        assert records[0]["source"] == "pokemontcg"

    @pytest.mark.asyncio
    async def test_pokemon_market_price(self, make_fetcher):
        card = {
            "name": "Charizard",
            "tcgplayer": {"prices": {"normal": {"market": 3.5}, "holofoil": {"market": 250.0}}},
        }

        def handler(request):
            page = int(request.url.params["page"])
            return httpx.Response(200, json={"data": [card] if page == 1 else []})

        records = await PokemonTcgScraper(make_fetcher(handler)).fetch(10)

        assert records[0]["price_market"] == 250.0

    @pytest.mark.asyncio
    async def test_failed_page_keeps_partial_results(self, make_fetcher):
        def handler(request):
            if request.url.params["page"] == "1":
                return httpx.Response(200, json=BEERS)
            return httpx.Response(500)

        records = await PunkApiScraper(make_fetcher(handler, max_retries=1)).fetch(1000)

        assert len(records) == 3

    @pytest.mark.asyncio
    async def test_openfoodfacts_spreads_limit_over_categories(self, make_fetcher):
        categories = []
        products = [
            {"code": "0001", "product_name": "Spirit A", "brands": "Acme, Other", "alcohol_100g": 40},
            {"code": "0002", "product_name": ""},
            {"code": "0003", "product_name": "Spirit B", "countries": "France,Belgium"},
            {"code": "0004", "product_name": "Spirit C"},
        ]

        def handler(request):
            categories.append(request.url.params["tag_0"])
            return httpx.Response(200, json={"products": products})

        records = await OpenFoodFactsScraper(make_fetcher(handler)).fetch(16)

        # 2 per category cap, but a whole page (3 named products) is kept
        assert len(records) == 16
        assert categories == list(OpenFoodFactsScraper.CATEGORIES[:6])
        assert records[0]["brand"] == "Acme"
        assert records[0]["category"] == "en:spirits"
        assert records[1]["country"] == "France"
        assert all(r["name"] for r in records)

    @pytest.mark.asyncio
    async def test_openlibrary_offsets_per_subject(self, make_fetcher):
        seen = []

        def handler(request):
            subject = request.url.path.rsplit("/", 1)[-1].removesuffix(".json")
            offset = int(request.url.params["offset"])
            seen.append((subject, offset))
            works = [{"title": f"{subject} {offset}", "key": "/works/OL1W", "authors": [{"name": "A"}]}]
            return httpx.Response(200, json={"works": works if offset < 200 else []})

        records = await OpenLibraryScraper(make_fetcher(handler)).fetch(3)

        assert seen[:3] == [("fiction", 0), ("fiction", 100), ("fiction", 200)]
        assert seen[3] == ("fantasy", 0)
        assert [r["subject"] for r in records] == ["fiction", "fiction", "fantasy"]
        assert records[0]["author"] == "A"


class TestCursorScraper:
    """Test Scryfall continuation following."""

    @pytest.mark.asyncio
    async def test_follows_next_page(self, make_fetcher):
        requested = []

        def handler(request):
            requested.append(str(request.url))
            if request.url.params.get("page") == "2":
                return httpx.Response(
                    200,
                    json={"has_more": False, "data": [{"name": "Island", "prices": {"usd": "0.10"}}]},
                )
            return httpx.Response(
                200,
                json={
                    "has_more": True,
                    "next_page": "https://api.scryfall.com/cards/search?q=*&page=2",
                    "data": [
                        {"name": "Black Lotus", "set": "lea", "collector_number": "232"},
                        {"name": "Mox Pearl", "set": "lea"},
                    ],
                },
            )

        records = await ScryfallScraper(make_fetcher(handler)).fetch(100)

        assert [r["name"] for r in records] == ["Black Lotus", "Mox Pearl", "Island"]
        assert records[0]["number"] == "232"
        assert records[2]["price_market"] == "0.10"
        assert len(requested) == 2
        assert "unique=cards" in requested[0]

    @pytest.mark.asyncio
    async def test_unexpected_payload_ends_listing(self, make_fetcher):
        fetcher = make_fetcher(lambda request: httpx.Response(200, json=["not", "a", "page"]))

        assert await ScryfallScraper(fetcher).fetch(100) == []

    @pytest.mark.asyncio
    async def test_error_ends_listing(self, make_fetcher):
        fetcher = make_fetcher(lambda request: httpx.Response(502), max_retries=1)

        assert await ScryfallScraper(fetcher).fetch(100) == []


class TestKeyspaceScrapers:
    """Test enumeration-driven sources."""

    @pytest.mark.asyncio
    async def test_cocktaildb_ingredients_then_letters(self, make_fetcher):
        def handler(request):
            if request.url.path.endswith("list.php"):
                return httpx.Response(
                    200, json={"drinks": [{"strIngredient1": "Gin"}, {"strIngredient1": "Dark rum"}]}
                )
            if request.url.params["f"] == "a":
                return httpx.Response(
                    200,
                    json={
                        "drinks": [
                            {
                                "idDrink": "17222",
                                "strDrink": "A1",
                                "strCategory": "Cocktail",
                                "strInstructions": "Shake.",
                            }
                        ]
                    },
                )
            return httpx.Response(200, json={"drinks": None})

        records = await CocktailDbScraper(make_fetcher(handler)).fetch(100)

        assert [r["name"] for r in records] == ["Gin", "Dark rum", "A1"]
        assert records[0]["category"] == "Gin"
        assert records[2]["external_ids"] == {"thecocktaildb": "17222"}

    @pytest.mark.asyncio
    async def test_cocktaildb_malformed_entries_skipped(self, make_fetcher):
        def handler(request):
            if request.url.path.endswith("list.php"):
                return httpx.Response(200, json={"drinks": [{"strIngredient1": "Gin"}, "Vodka"]})
            if request.url.params["f"] == "b":
                # search body shaped as a list is unreadable
                return httpx.Response(200, json=[{"strDrink": "B52"}])
            return httpx.Response(200, json={"drinks": None})

        records = await CocktailDbScraper(make_fetcher(handler)).fetch(100)

        assert [r["name"] for r in records] == ["Gin"]

    @pytest.mark.asyncio
    async def test_cocktaildb_limit_within_ingredients(self, make_fetcher):
        drinks = [{"strIngredient1": f"Ingredient {i}"} for i in range(5)]
        fetcher = make_fetcher(lambda request: httpx.Response(200, json={"drinks": drinks}))

        records = await CocktailDbScraper(fetcher).fetch(2)

        assert len(records) == 2

    def test_untappd_requires_credentials(self, make_fetcher, config):
        context = ScrapeContext(fetcher=make_fetcher(lambda r: httpx.Response(200)), config=config)

        with pytest.raises(MissingCredentialsError):
            UntappdScraper.from_context(context)

    @pytest.mark.asyncio
    async def test_untappd_parses_search(self, make_fetcher):
        payload = {
            "meta": {"code": 200},
            "response": {
                "beers": {
                    "items": [
                        {
                            "beer": {"bid": 42, "beer_name": "Heady Topper", "beer_abv": 8},
                            "brewery": {"brewery_name": "The Alchemist", "country_name": "United States"},
                        }
                    ]
                }
            },
        }
        fetcher = make_fetcher(lambda request: httpx.Response(200, json=payload))
        scraper = UntappdScraper(fetcher, "id", "secret")

        records = await scraper.fetch(1)

        assert records == [
            {
                "name": "Heady Topper",
                "brand": "The Alchemist",
                "category": "beer",
                "subcategory": "",
                "abv": 8,
                "description": "",
                "image_url": None,
                "country": "United States",
                "region": "",
                "distillery": "The Alchemist",
                "external_ids": {"untappd": 42},
                "source": "untappd",
            }
        ]

    @pytest.mark.asyncio
    async def test_ttb_cola_enumerates_until_misses(self, make_fetcher, sleep):
        requested = []

        def handler(request):
            ttbid = request.url.params["ttbid"]
            requested.append(ttbid)
            if ttbid == "24015001000001":
                return httpx.Response(200, text=TTB_DETAIL)
            return httpx.Response(404)

        scraper = TtbColaScraper(make_fetcher(handler), years=[2024], days=[15], max_sequence=50)
        records = await scraper.fetch(100)

        # one hit, then five consecutive misses end the day
        assert requested == [f"24015001{seq:06d}" for seq in range(1, 7)]
        assert sleep.calls == [1.0] * 6
        assert records == [
            {
                "name": "1920 PROHIBITION STYLE",
                "brand": "OLD FORESTER",
                "category": "STRAIGHT BOURBON WHISKY",
                "abv": "57.5%",
                "country": "KENTUCKY",
                "distillery": "",
                "source_url": (
                    "https://ttbonline.gov/colasonline/viewColaDetails.do"
                    "?action=publicFormDisplay&ttbid=24015001000001"
                ),
                "external_ids": {"ttb_id": "24015001000001"},
                "source": "ttb_cola",
            }
        ]

    @pytest.mark.asyncio
    async def test_ttb_cola_skips_failed_keys(self, make_fetcher):
        def handler(request):
            if request.url.params["ttbid"].endswith("000002"):
                return httpx.Response(200, text=TTB_DETAIL)
            return httpx.Response(500)

        scraper = TtbColaScraper(
            make_fetcher(handler, max_retries=1), years=[2024], days=[1], max_sequence=3
        )
        records = await scraper.fetch(10)

        assert len(records) == 1
        assert records[0]["external_ids"] == {"ttb_id": "24001001000002"}

    @pytest.mark.asyncio
    async def test_ttb_cola_page_without_brand_is_a_miss(self, make_fetcher):
        fetcher = make_fetcher(lambda request: httpx.Response(200, text="<html>No record</html>"))
        scraper = TtbColaScraper(fetcher, years=[2023], days=[200], max_sequence=10)

        assert await scraper.fetch(10) == []
