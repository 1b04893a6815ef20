"""
Deal webhook tests. httpx is never allowed to reach the network.
"""

import httpx
import pytest

from buygroup.services import notification_service


@pytest.fixture
def webhook(app, monkeypatch):
    monkeypatch.setitem(app.config, "DEAL_WEBHOOK_URL", "https://bot.example.com/hooks/deals")
    monkeypatch.setitem(app.config, "DEAL_WEBHOOK_SECRET", "s3cret")
    calls = []

    def respond_with(status_code=200, exc=None):
        def fake_post(url, json=None, headers=None, timeout=None):
            calls.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
            if exc is not None:
                raise exc
            return httpx.Response(status_code, text="ok", request=httpx.Request("POST", url))

        monkeypatch.setattr(notification_service.httpx, "post", fake_post)

    respond_with()
    return calls, respond_with


def test_payload_for_above_retail_deal(make_deal):
    deal = make_deal(image_url="https://img.example/switch.png")
    payload = notification_service.format_deal_payload(deal)

    assert payload["item"] == "Nintendo Switch OLED"
    assert payload["price"] == "$349.99"
    assert payload["exclusive_price"] == "$360.00"
    assert payload["original_price"] == "$349.99"
    assert payload["url"] == f"https://deals.example.com/dashboard/deals/{deal.deal_id}"
    assert payload["store"] == "Test Group"
    assert "discount" not in payload
    assert "description" not in payload


def test_payload_for_discounted_deal(make_deal):
    deal = make_deal(retail_price_cents=10000, payout_cents=7500, description="Limited run")
    payload = notification_service.format_deal_payload(deal)
    assert payload["price"] == "$75.00"
    assert payload["discount"] == "25% off"
    assert payload["description"] == "Limited run"
    assert "exclusive_price" not in payload


def test_sends_with_secret_header(make_deal, webhook):
    calls, _ = webhook
    deal = make_deal()  # activation fires the webhook
    assert len(calls) == 1
    assert calls[0]["url"] == "https://bot.example.com/hooks/deals"
    assert calls[0]["headers"] == {"X-Webhook-Secret": "s3cret"}
    assert calls[0]["json"]["item"] == deal.title
    assert notification_service.notify_deal_activated(deal) is True


def test_transport_failure_is_swallowed(make_deal, webhook):
    calls, respond_with = webhook
    respond_with(exc=httpx.ConnectError("connection refused"))

    deal = make_deal()
    assert deal.status == "ACTIVE"
    assert notification_service.notify_deal_activated(deal) is False


def test_rejection_is_reported_not_raised(make_deal, webhook):
    _, respond_with = webhook
    respond_with(status_code=502)
    deal = make_deal(status="DRAFT")
    assert notification_service.notify_deal_activated(deal) is False


def test_unconfigured_webhook_skips(make_deal, monkeypatch):
    def fail(*args, **kwargs):
        raise AssertionError("webhook should not be called")

    monkeypatch.setattr(notification_service.httpx, "post", fail)
    deal = make_deal()
    assert notification_service.notify_deal_activated(deal) is False
