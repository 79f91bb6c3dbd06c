import time

import pytest
from sib_api_v3_sdk.rest import ApiException

from seekers_api.application.ports.email_sender import EmailDeliveryError
from seekers_api.infrastructure.email.brevo_email_sender import BrevoEmailSender


class FakeTransactionalApi:
    def __init__(self, outcomes=(), delay: float = 0.0):
        self.outcomes = list(outcomes)
        self.delay = delay
        self.calls = []

    def send_transac_email(self, email):
        self.calls.append(email)
        if self.delay:
            time.sleep(self.delay)
        if self.outcomes:
            outcome = self.outcomes.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
        return {"messageId": "m-1"}


def make_sender(api, timeout: float = 5.0):
    sender = BrevoEmailSender(api_key="test-key", from_email="noreply@x.com", from_name="Seekers",
                              timeout=timeout, max_retries=3, backoff=0)
    sender.transactional_emails_api = api
    return sender


@pytest.mark.asyncio
async def test_template_send_passes_params():
    api = FakeTransactionalApi()
    await make_sender(api).send("a@x.com", "Verify", 7, {"name": "Alice", "otp": "123456"})

    email = api.calls[0]
    assert email.template_id == 7
    assert email.params == {"name": "Alice", "otp": "123456"}
    assert email.to[0].email == "a@x.com"


@pytest.mark.asyncio
async def test_send_without_template_renders_code():
    api = FakeTransactionalApi()
    await make_sender(api).send("a@x.com", "Verify", None, {"name": "Alice", "otp": "654321"})
    assert "654321" in api.calls[0].html_content


@pytest.mark.asyncio
async def test_server_errors_are_retried():
    api = FakeTransactionalApi([ApiException(status=503, reason="Unavailable")])
    await make_sender(api).send("a@x.com", "Verify", 7, {"otp": "123456"})
    assert len(api.calls) == 2


@pytest.mark.asyncio
async def test_client_errors_are_not_retried():
    api = FakeTransactionalApi([ApiException(status=400, reason="Bad Request")])
    with pytest.raises(EmailDeliveryError):
        await make_sender(api).send("a@x.com", "Verify", 7, {"otp": "123456"})
    assert len(api.calls) == 1


@pytest.mark.asyncio
async def test_timeout_is_not_resent():
    api = FakeTransactionalApi(delay=0.3)
    with pytest.raises(EmailDeliveryError):
        await make_sender(api, timeout=0.05).send("a@x.com", "Verify", 7, {"otp": "123456"})
    assert len(api.calls) == 1


@pytest.mark.asyncio
async def test_gives_up_after_max_retries():
    api = FakeTransactionalApi([ApiException(status=500)] * 3)
    with pytest.raises(EmailDeliveryError):
        await make_sender(api).send("a@x.com", "Verify", 7, {"otp": "123456"})
    assert len(api.calls) == 3


@pytest.mark.asyncio
async def test_missing_api_key_fails_fast():
    sender = BrevoEmailSender(api_key="", from_email="noreply@x.com", from_name="Seekers")
    with pytest.raises(EmailDeliveryError):
        await sender.send("a@x.com", "Verify", 7, {"otp": "123456"})
