# ─────────────────────────────────────────────────────────────────────────────
# Integration tests — full request flow over httpx ASGITransport
# ─────────────────────────────────────────────────────────────────────────────
# app.state is built by conftest.install_state (ASGITransport doesn't run
# lifespan). Distinct peer addresses come from ASGITransport(client=...).
# ─────────────────────────────────────────────────────────────────────────────

from __future__ import annotations

from collections.abc import AsyncIterator
from unittest.mock import MagicMock

import pytest
from conftest import FakeClock
from dirty_equals import IsInt, IsPartialDict
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient


def _peer(app: FastAPI, host: str) -> AsyncClient:
    return AsyncClient(
        transport=ASGITransport(app=app, client=(host, 50123)), base_url="http://test"
    )


@pytest.fixture
async def client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    async with _peer(app, "1.2.3.4") as c:
        yield c


# ── Rate limiting end to end ─────────────────────────────────────────────────


class TestClientThrottling:
    async def test_sixth_signin_in_a_minute_throttled(
        self, app: FastAPI, clock: FakeClock
    ) -> None:
        async with _peer(app, "1.2.3.4") as client:
            codes = [(await client.post("/signin")).status_code for _ in range(6)]
            assert codes == [401] * 5 + [429]

            clock.advance(60.0)
            assert (await client.post("/signin")).status_code == 401

        async with _peer(app, "5.6.7.8") as other:
            assert (await other.post("/signin")).status_code == 401

    async def test_same_host_different_ports_share_a_bucket(self, app: FastAPI) -> None:
        for port in range(6):
            transport = ASGITransport(app=app, client=("1.2.3.4", 40000 + port))
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                response = await client.post("/signin")
        assert response.status_code == 429

    async def test_idle_client_evicted_and_starts_fresh(
        self, app: FastAPI, clock: FakeClock
    ) -> None:
        limiter = app.state.limiter
        async with _peer(app, "1.2.3.4") as client:
            for _ in range(5):
                await client.post("/signin")
            clock.advance(61.0)
            assert limiter.sweep() == 1
            assert ("1.2.3.4", 5) not in limiter
            assert (await client.post("/signin")).status_code == 401
        assert ("1.2.3.4", 5) in limiter

    async def test_malformed_body_spends_a_token_and_is_throttled(
        self, client: AsyncClient
    ) -> None:
        headers = {"Content-Type": "application/json"}
        codes = [
            (await client.post("/checkout", content=b"{not json", headers=headers)).status_code
            for _ in range(11)
        ]
        assert codes == [400] * 10 + [429]

        valid = await client.post("/checkout", json={"items": [{"id": "prod_tee_m", "quantity": 1}]})
        assert valid.status_code == 429

    async def test_upload_checked_before_multipart_is_parsed(self, client: AsyncClient) -> None:
        response = await client.post(
            "/image",
            content=b"--x\r\nnot a multipart part",
            headers={"Content-Type": "multipart/form-data; boundary=x"},
        )
        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_TOKEN_FORMAT"

    async def test_guarded_route_charges_once_per_request(
        self, client: AsyncClient, app: FastAPI
    ) -> None:
        await client.post("/signin")
        assert app.state.limiter.stats() == IsPartialDict(admitted=1, throttled=0)

    async def test_public_catalogue_allows_a_hundred(self, client: AsyncClient) -> None:
        codes = [(await client.get("/products")).status_code for _ in range(101)]
        assert codes.count(200) == 100
        assert codes[-1] == 429


# ── Catalogue ────────────────────────────────────────────────────────────────


class TestProducts:
    async def test_list_includes_stripe_images(
        self, client: AsyncClient, mock_gateway: MagicMock
    ) -> None:
        mock_gateway.product_image.side_effect = lambda pid: f"https://img/{pid}.jpg"
        response = await client.get("/products")
        assert response.status_code == 200
        assert response.json() == [
            IsPartialDict(id="prod_tee_l", image_url="https://img/prod_tee_l.jpg"),
            IsPartialDict(id="prod_tee_m", image_url="https://img/prod_tee_m.jpg"),
        ]

    async def test_admin_crud(self, client: AsyncClient, admin_headers: dict[str, str]) -> None:
        created = await client.post(
            "/product",
            headers=admin_headers,
            json={"id": "prod_hat", "name": "Hat", "price": 15.5, "quantity": 4},
        )
        assert created.status_code == 201

        patched = await client.patch(
            "/product/prod_hat", headers=admin_headers, json={"quantity": 9, "id": "other"}
        )
        assert patched.status_code == 200
        assert patched.json() == IsPartialDict(id="prod_hat", quantity=9, price=15.5)

        gone = await client.delete("/product/prod_hat", headers=admin_headers)
        assert gone.status_code == 410
        assert gone.json() == "Gone"

        missing = await client.get("/product/prod_hat", headers=admin_headers)
        assert missing.status_code == 404

    async def test_duplicate_create_conflicts(
        self, client: AsyncClient, admin_headers: dict[str, str]
    ) -> None:
        response = await client.post(
            "/product",
            headers=admin_headers,
            json={"id": "prod_tee_m", "name": "Tee", "price": 1, "quantity": 1},
        )
        assert response.status_code == 409

    async def test_writes_need_admin(self, client: AsyncClient) -> None:
        response = await client.delete("/product/prod_tee_m")
        assert response.status_code == 400


class TestEventsAndArtists:
    async def test_event_lifecycle(
        self, client: AsyncClient, admin_headers: dict[str, str]
    ) -> None:
        created = await client.post(
            "/event",
            headers=admin_headers,
            json={
                "headliner": {"name": "Headliner"},
                "openers": [{"name": "Opener", "sequence": 1}],
                "location_name": "The Venue",
                "start_time": "2026-11-01T20:00:00Z",
            },
        )
        assert created.status_code == 201
        event_id = created.json()["id"]
        assert event_id == IsInt

        listed = await client.get("/events")
        assert [e["id"] for e in listed.json()] == [event_id]

        patched = await client.patch(
            f"/event/{event_id}", headers=admin_headers, json={"ticket_url": "https://t.example"}
        )
        assert patched.json() == IsPartialDict(
            ticket_url="https://t.example", location_name="The Venue"
        )

        assert (await client.delete(f"/event/{event_id}", headers=admin_headers)).status_code == 410
        assert (await client.get(f"/event/{event_id}")).status_code == 404

    async def test_artist_lifecycle(
        self, client: AsyncClient, admin_headers: dict[str, str]
    ) -> None:
        created = await client.post("/artist", headers=admin_headers, json={"name": "DJ One"})
        artist_id = created.json()["id"]
        assert (await client.get(f"/artist/{artist_id}")).json()["name"] == "DJ One"
        assert (await client.get("/artists")).status_code == 200
        assert (
            await client.delete(f"/artist/{artist_id}", headers=admin_headers)
        ).status_code == 410

    async def test_featured_artists_ordered(
        self, client: AsyncClient, admin_headers: dict[str, str]
    ) -> None:
        for name, seq in [("B", 2), ("A", 1)]:
            await client.post(
                "/featured_artist",
                headers=admin_headers,
                json={"artist": {"name": name}, "sequence": seq},
            )
        listed = (await client.get("/featured_artists")).json()
        assert [f["artist"]["name"] for f in listed] == ["A", "B"]

    async def test_null_patch_fields_keep_stored_values(
        self, client: AsyncClient, admin_headers: dict[str, str]
    ) -> None:
        event = await client.post(
            "/event",
            headers=admin_headers,
            json={"headliner": {"name": "Headliner"}, "image_url": "https://img/e.jpg"},
        )
        artist = await client.post("/artist", headers=admin_headers, json={"name": "DJ One"})
        featured = await client.post(
            "/featured_artist", headers=admin_headers, json={"artist": {"name": "A"}}
        )

        patches = [
            (f"/event/{event.json()['id']}", {"image_url": None}, {"image_url": "https://img/e.jpg"}),
            (f"/artist/{artist.json()['id']}", {"name": None}, {"name": "DJ One"}),
            (
                f"/featured_artist/{featured.json()['id']}",
                {"artist": None},
                {"artist": IsPartialDict(name="A")},
            ),
        ]
        for path, body, kept in patches:
            response = await client.patch(path, headers=admin_headers, json=body)
            assert response.status_code == 200, path
            assert response.json() == IsPartialDict(kept)

    async def test_invalid_id_type(self, client: AsyncClient) -> None:
        response = await client.get("/event/not-a-number")
        assert response.status_code == 400
