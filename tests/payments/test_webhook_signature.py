"""Standard Webhooks signature verification."""
import base64
import json
import unittest

from animeleak.services.payments.webhooks import WebhookVerificationError, sign_payload, verify_webhook

SECRET = "whsec_" + base64.b64encode(b"unit-test-secret").decode("ascii")
NOW = 1_760_000_000


def _headers(body: bytes, secret: str = SECRET, msg_id: str = "msg_1", ts: int = NOW) -> dict:
    return {
        "webhook-id": msg_id,
        "webhook-timestamp": str(ts),
        "webhook-signature": f"v1,{sign_payload(secret, msg_id, str(ts), body)}",
    }


class TestVerifyWebhook(unittest.TestCase):
    def setUp(self):
        self.body = json.dumps({"type": "order.paid", "data": {"id": "ord_1"}}).encode()

    def test_valid_signature_returns_event(self):
        event = verify_webhook(self.body, _headers(self.body), SECRET, now=NOW)
        self.assertEqual(event["data"]["id"], "ord_1")

    def test_any_listed_v1_signature_may_match(self):
        headers = _headers(self.body)
        headers["webhook-signature"] = "v1,bm90LWl0 " + headers["webhook-signature"]
        self.assertEqual(verify_webhook(self.body, headers, SECRET, now=NOW)["type"], "order.paid")

    def test_raw_secret_without_prefix(self):
        event = verify_webhook(self.body, _headers(self.body, secret="plain"), "plain", now=NOW)
        self.assertEqual(event["type"], "order.paid")

    def test_tampered_body_rejected(self):
        headers = _headers(self.body)
        with self.assertRaises(WebhookVerificationError):
            verify_webhook(self.body.replace(b"ord_1", b"ord_2"), headers, SECRET, now=NOW)

    def test_wrong_secret_rejected(self):
        other = "whsec_" + base64.b64encode(b"other-secret").decode("ascii")
        with self.assertRaises(WebhookVerificationError):
            verify_webhook(self.body, _headers(self.body, secret=other), SECRET, now=NOW)

    def test_stale_timestamp_rejected(self):
        headers = _headers(self.body, ts=NOW - 301)
        with self.assertRaises(WebhookVerificationError):
            verify_webhook(self.body, headers, SECRET, tolerance_seconds=300, now=NOW)

    def test_missing_headers_rejected(self):
        headers = _headers(self.body)
        del headers["webhook-signature"]
        with self.assertRaises(WebhookVerificationError):
            verify_webhook(self.body, headers, SECRET, now=NOW)

    def test_unconfigured_secret_rejected(self):
        with self.assertRaises(WebhookVerificationError):
            verify_webhook(self.body, _headers(self.body), "", now=NOW)

    def test_unsupported_signature_version_rejected(self):
        headers = _headers(self.body)
        headers["webhook-signature"] = headers["webhook-signature"].replace("v1,", "v2,")
        with self.assertRaises(WebhookVerificationError):
            verify_webhook(self.body, headers, SECRET, now=NOW)
