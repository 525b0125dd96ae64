"""Tests for the rate-limited Scryfall client."""

import asyncio
import json

import httpx
import pytest
from conftest import DELVER_ID, SOL_RING_ID, collection_response, scryfall_error

from edhbuilder.clients.scryfall import (
    RateLimiter,
    ScryfallAPIError,
    ScryfallClient,
    SearchFilters,
    is_scryfall_error,
)
from edhbuilder.config import settings


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def recorded_sleeps(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    """Replace asyncio.sleep with a recorder that yields without waiting."""
    sleeps: list[float] = []
    real_sleep = asyncio.sleep

    async def fake_sleep(delay: float) -> None:
        sleeps.append(delay)
        await real_sleep(0)

    monkeypatch.setattr(asyncio, "sleep", fake_sleep)
    return sleeps


class TestRateLimiter:
    async def test_first_request_does_not_wait(self, recorded_sleeps: list[float]) -> None:
        limiter = RateLimiter(0.1, clock=FakeClock(5.0))

        await limiter.acquire()

        assert recorded_sleeps == []

    async def test_back_to_back_requests_are_spaced(self, recorded_sleeps: list[float]) -> None:
        limiter = RateLimiter(0.1, clock=FakeClock())

        await limiter.acquire()
        await limiter.acquire()

        assert recorded_sleeps == [pytest.approx(0.1)]

    async def test_concurrent_callers_get_distinct_slots(
        self, recorded_sleeps: list[float]
    ) -> None:
        """Callers arriving together are queued one interval apart."""
        limiter = RateLimiter(0.1, clock=FakeClock())

        await asyncio.gather(*(limiter.acquire() for _ in range(4)))

        assert sorted(recorded_sleeps) == [
            pytest.approx(0.1),
            pytest.approx(0.2),
            pytest.approx(0.3),
        ]

    async def test_no_wait_after_interval_elapsed(self, recorded_sleeps: list[float]) -> None:
        clock = FakeClock()
        limiter = RateLimiter(0.1, clock=clock)

        await limiter.acquire()
        clock.now = 0.25
        await limiter.acquire()

        assert recorded_sleeps == []

    async def test_partial_wait(self, recorded_sleeps: list[float]) -> None:
        clock = FakeClock()
        limiter = RateLimiter(0.1, clock=clock)

        await limiter.acquire()
        clock.now = 0.04
        await limiter.acquire()

        assert recorded_sleeps == [pytest.approx(0.06)]


class TestSearchFilters:
    def test_full_query(self) -> None:
        filters = SearchFilters(
            query="dragon",
            colors=["W", "U"],
            color_identity=["W", "U", "B"],
            type="creature",
            cmc=3.0,
            cmc_operator="lte",
            rarity="rare",
            set="cmr",
            is_commander=True,
        )

        assert filters.to_query() == (
            "dragon c:WU id<=WUB t:creature cmc<=3 r:rare s:cmr is:commander f:commander"
        )

    def test_defaults_to_commander_legal(self) -> None:
        assert SearchFilters().to_query() == "f:commander"

    def test_fractional_cmc_kept(self) -> None:
        assert "cmc>0.5" in SearchFilters(cmc=0.5, cmc_operator="gt").to_query()


class TestSingleCardLookups:
    async def test_get_card_returns_payload(
        self, scryfall_mock, scryfall_client: ScryfallClient, sol_ring_payload
    ) -> None:
        route = scryfall_mock.get(f"/cards/{SOL_RING_ID}").mock(
            return_value=httpx.Response(200, json=sol_ring_payload)
        )

        card = await scryfall_client.get_card(SOL_RING_ID)

        assert card is not None
        assert card["name"] == "Sol Ring"
        assert route.calls.last.request.headers["User-Agent"] == settings.user_agent

    async def test_not_found_is_none(self, scryfall_mock, scryfall_client: ScryfallClient) -> None:
        scryfall_mock.get("/cards/missing").mock(
            return_value=scryfall_error(404, "not_found", "No card found with the given ID")
        )

        assert await scryfall_client.get_card("missing") is None

    async def test_other_error_object_raises(
        self, scryfall_mock, scryfall_client: ScryfallClient
    ) -> None:
        scryfall_mock.get("/cards/broken").mock(
            return_value=scryfall_error(500, "internal_error", "Something broke")
        )

        with pytest.raises(ScryfallAPIError) as exc_info:
            await scryfall_client.get_card("broken")

        assert exc_info.value.code == "internal_error"
        assert exc_info.value.status == 500

    async def test_error_detected_by_shape_not_status(
        self, scryfall_mock, scryfall_client: ScryfallClient
    ) -> None:
        """An error object is an error even when the HTTP status says OK."""
        scryfall_mock.get("/cards/odd").mock(
            return_value=httpx.Response(
                200, json={"object": "error", "code": "bad_request", "status": 400}
            )
        )

        with pytest.raises(ScryfallAPIError):
            await scryfall_client.get_card("odd")

    async def test_non_json_error_page_raises_http_error(
        self, scryfall_mock, scryfall_client: ScryfallClient
    ) -> None:
        scryfall_mock.get("/cards/down").mock(
            return_value=httpx.Response(503, text="Service Unavailable")
        )

        with pytest.raises(httpx.HTTPStatusError):
            await scryfall_client.get_card("down")

    async def test_transport_error_propagates(
        self, scryfall_mock, scryfall_client: ScryfallClient
    ) -> None:
        scryfall_mock.get("/cards/timeout").mock(side_effect=httpx.ConnectTimeout("timed out"))

        with pytest.raises(httpx.HTTPError):
            await scryfall_client.get_card("timeout")

    async def test_get_card_by_name_exact_and_fuzzy(
        self, scryfall_mock, scryfall_client: ScryfallClient, sol_ring_payload
    ) -> None:
        route = scryfall_mock.get("/cards/named").mock(
            return_value=httpx.Response(200, json=sol_ring_payload)
        )

        await scryfall_client.get_card_by_name("Sol Ring")
        await scryfall_client.get_card_by_name("sol rin", fuzzy=True)

        assert route.calls[0].request.url.params["exact"] == "Sol Ring"
        assert route.calls[1].request.url.params["fuzzy"] == "sol rin"

    async def test_random_card_with_filters(
        self, scryfall_mock, scryfall_client: ScryfallClient, sol_ring_payload
    ) -> None:
        route = scryfall_mock.get("/cards/random").mock(
            return_value=httpx.Response(200, json=sol_ring_payload)
        )

        await scryfall_client.get_random_card(SearchFilters(type="artifact"))

        assert route.calls.last.request.url.params["q"] == "t:artifact f:commander"


class TestSearch:
    async def test_search_returns_page(
        self, scryfall_mock, scryfall_client: ScryfallClient, sol_ring_payload
    ) -> None:
        route = scryfall_mock.get("/cards/search").mock(
            return_value=httpx.Response(
                200,
                json={
                    "object": "list",
                    "total_cards": 250,
                    "has_more": True,
                    "data": [sol_ring_payload],
                },
            )
        )

        result = await scryfall_client.search_cards(SearchFilters(query="ring", page=2))

        assert result.total == 250
        assert result.has_more is True
        assert result.cards[0]["name"] == "Sol Ring"
        params = route.calls.last.request.url.params
        assert params["unique"] == "cards"
        assert params["order"] == "name"
        assert params["page"] == "2"

    async def test_no_matches_is_empty_result(
        self, scryfall_mock, scryfall_client: ScryfallClient
    ) -> None:
        scryfall_mock.get("/cards/search").mock(
            return_value=scryfall_error(404, "not_found", "Your query didn't match any cards.")
        )

        result = await scryfall_client.search_cards(SearchFilters(query="zzzz"))

        assert result.cards == []
        assert result.total == 0
        assert result.error is None

    async def test_bad_query_sets_error(
        self, scryfall_mock, scryfall_client: ScryfallClient
    ) -> None:
        scryfall_mock.get("/cards/search").mock(
            return_value=scryfall_error(400, "bad_request", "All of your terms were ignored.")
        )

        result = await scryfall_client.search_cards(SearchFilters(query="t:"))

        assert result.error == "All of your terms were ignored."

    async def test_empty_query_skips_request(
        self, scryfall_mock, scryfall_client: ScryfallClient
    ) -> None:
        route = scryfall_mock.get("/cards/search")

        result = await scryfall_client.search_cards(SearchFilters(is_legal=False))

        assert result.cards == []
        assert not route.called

    async def test_printings_ordered_newest_first(
        self, scryfall_mock, scryfall_client: ScryfallClient
    ) -> None:
        route = scryfall_mock.get("/cards/search").mock(
            return_value=httpx.Response(200, json={"object": "list", "data": []})
        )

        await scryfall_client.get_card_printings("oracle-1")

        params = route.calls.last.request.url.params
        assert params["q"] == "oracle_id:oracle-1"
        assert params["unique"] == "prints"
        assert params["dir"] == "desc"


class TestAutocomplete:
    async def test_short_query_skips_request(
        self, scryfall_mock, scryfall_client: ScryfallClient
    ) -> None:
        route = scryfall_mock.get("/cards/autocomplete")

        assert await scryfall_client.autocomplete("s") == []
        assert not route.called

    async def test_returns_names(self, scryfall_mock, scryfall_client: ScryfallClient) -> None:
        scryfall_mock.get("/cards/autocomplete").mock(
            return_value=httpx.Response(
                200, json={"object": "catalog", "data": ["Sol Ring", "Sol Talisman"]}
            )
        )

        assert await scryfall_client.autocomplete("sol") == ["Sol Ring", "Sol Talisman"]


class TestCollectionLookups:
    async def test_ids_are_chunked(self, scryfall_mock, scryfall_client: ScryfallClient) -> None:
        """160 identifiers take three requests of at most 75."""
        chunk_sizes: list[int] = []

        def respond(request: httpx.Request) -> httpx.Response:
            identifiers = json.loads(request.content)["identifiers"]
            chunk_sizes.append(len(identifiers))
            cards = [{"id": ident["id"], "name": f"Card {ident['id']}"} for ident in identifiers]
            return collection_response(cards)

        scryfall_mock.post("/cards/collection").mock(side_effect=respond)
        ids = [f"id-{n}" for n in range(160)]

        cards = await scryfall_client.get_cards_by_ids(ids)

        assert chunk_sizes == [75, 75, 10]
        assert set(cards) == set(ids)

    async def test_unknown_ids_absent(
        self, scryfall_mock, scryfall_client: ScryfallClient, sol_ring_payload
    ) -> None:
        scryfall_mock.post("/cards/collection").mock(
            return_value=collection_response([sol_ring_payload], not_found=[{"id": "nope"}])
        )

        cards = await scryfall_client.get_cards_by_ids([SOL_RING_ID, "nope"])

        assert list(cards) == [SOL_RING_ID]

    async def test_empty_input_skips_request(
        self, scryfall_mock, scryfall_client: ScryfallClient
    ) -> None:
        route = scryfall_mock.post("/cards/collection")

        assert await scryfall_client.get_cards_by_ids([]) == {}
        assert await scryfall_client.get_cards_by_names([]) == {}
        assert not route.called

    async def test_names_keyed_lowercase_with_front_face(
        self, scryfall_mock, scryfall_client: ScryfallClient, delver_payload
    ) -> None:
        scryfall_mock.post("/cards/collection").mock(
            return_value=collection_response([delver_payload])
        )

        cards = await scryfall_client.get_cards_by_names(["Delver of Secrets"])

        assert cards["delver of secrets"]["id"] == DELVER_ID
        assert cards["delver of secrets // insectile aberration"]["id"] == DELVER_ID

    async def test_collection_error_raises(
        self, scryfall_mock, scryfall_client: ScryfallClient
    ) -> None:
        scryfall_mock.post("/cards/collection").mock(
            return_value=scryfall_error(422, "validation_error", "Too many identifiers")
        )

        with pytest.raises(ScryfallAPIError):
            await scryfall_client.get_cards_by_names(["Sol Ring"])

    async def test_each_chunk_is_paced(
        self, scryfall_mock, http_client: httpx.AsyncClient, recorded_sleeps: list[float]
    ) -> None:
        client = ScryfallClient(
            http_client, rate_limiter=RateLimiter(0.1, clock=FakeClock()), batch_size=2
        )
        scryfall_mock.post("/cards/collection").mock(return_value=collection_response([]))

        await client.get_cards_by_ids(["a", "b", "c", "d", "e"])

        assert len(recorded_sleeps) == 2


def test_is_scryfall_error() -> None:
    assert is_scryfall_error({"object": "error", "code": "not_found"})
    assert not is_scryfall_error({"object": "card"})
    assert not is_scryfall_error(["not", "a", "dict"])
