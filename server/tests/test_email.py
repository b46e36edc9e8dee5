# ─────────────────────────────────────────────────────────────────────────────
# Email Tests — respx
# ─────────────────────────────────────────────────────────────────────────────
# respx intercepts the Mailer's httpx.AsyncClient at the transport layer;
# no request ever leaves the process.
# ─────────────────────────────────────────────────────────────────────────────

import json

import httpx
import pytest
import respx
from fastapi.testclient import TestClient

from storefront.config import Settings
from storefront.exceptions import EmailDeliveryError
from storefront.schemas import EmailRequest
from storefront.services.email import SUBJECT, Mailer, render_inquiry

MAILJET_URL = "https://api.mailjet.com/v3.1/send"

_INQUIRY = {"name": "Sam", "from": "sam@example.com", "body": "Are you free on the 5th?"}


class TestRenderInquiry:
    def test_includes_sender_and_body(self) -> None:
        html = render_inquiry(EmailRequest.model_validate(_INQUIRY))
        assert "Sam" in html
        assert "sam@example.com" in html
        assert "Are you free on the 5th?" in html

    def test_escapes_markup(self) -> None:
        inquiry = EmailRequest(name="<b>x</b>", sender="a@b.co", body="<script>")
        html = render_inquiry(inquiry)
        assert "<script>" not in html
        assert "&lt;script&gt;" in html


class TestMailer:
    @respx.mock
    async def test_posts_message(self, test_settings: Settings) -> None:
        route = respx.post(MAILJET_URL).mock(
            return_value=httpx.Response(200, json={"Messages": [{"Status": "success"}]})
        )
        mailer = Mailer(test_settings)
        try:
            await mailer.send_inquiry(EmailRequest.model_validate(_INQUIRY))
        finally:
            await mailer.close()

        assert route.call_count == 1
        request = route.calls.last.request
        assert request.headers["authorization"].startswith("Basic ")
        message = json.loads(request.content)["Messages"][0]
        assert message["Subject"] == SUBJECT
        assert message["From"] == {"Email": "noreply@example.com", "Name": "Booking"}
        assert message["To"] == [{"Email": "booking@example.com"}]
        assert message["ReplyTo"]["Email"] == "sam@example.com"

    @respx.mock
    async def test_provider_error(self, test_settings: Settings) -> None:
        respx.post(MAILJET_URL).mock(return_value=httpx.Response(401, json={"ErrorMessage": "x"}))
        mailer = Mailer(test_settings)
        try:
            with pytest.raises(EmailDeliveryError):
                await mailer.send_inquiry(EmailRequest.model_validate(_INQUIRY))
        finally:
            await mailer.close()

    @respx.mock
    async def test_network_error(self, test_settings: Settings) -> None:
        respx.post(MAILJET_URL).mock(side_effect=httpx.ConnectError("refused"))
        mailer = Mailer(test_settings)
        try:
            with pytest.raises(EmailDeliveryError):
                await mailer.send_inquiry(EmailRequest.model_validate(_INQUIRY))
        finally:
            await mailer.close()


class TestEmailRoute:
    @respx.mock
    def test_sent(self, client: TestClient) -> None:
        respx.post(MAILJET_URL).mock(return_value=httpx.Response(200, json={}))
        response = client.post("/email", json=_INQUIRY)
        assert response.status_code == 202
        assert response.json() == "message sent"

    @respx.mock
    def test_provider_failure_is_email_error(self, client: TestClient) -> None:
        respx.post(MAILJET_URL).mock(return_value=httpx.Response(500))
        response = client.post("/email", json=_INQUIRY)
        assert response.status_code == 500
        assert response.json()["error"] == "EMAIL_ERROR"

    def test_invalid_sender_rejected(self, client: TestClient) -> None:
        response = client.post("/email", json={**_INQUIRY, "from": "not-an-address"})
        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_JSON"
