"""Tests for Sentry initialisation and secret scrubbing."""

from unittest.mock import patch

from devpack.core.sentry import _scrub_secrets, init_sentry


class TestInitSentry:
    def test_empty_dsn_skips_init(self):
        with patch("devpack.core.sentry.sentry_sdk.init") as mock_init:
            assert init_sentry("") is False
            assert init_sentry("   ") is False
        mock_init.assert_not_called()

    def test_dsn_initialises_without_pii(self):
        with patch("devpack.core.sentry.sentry_sdk.init") as mock_init:
            assert init_sentry("https://key@sentry.example/1", environment="cli") is True
        kwargs = mock_init.call_args.kwargs
        assert kwargs["send_default_pii"] is False
        assert kwargs["environment"] == "cli"
        assert kwargs["before_send"] is _scrub_secrets


class TestScrubSecrets:
    def test_scrubs_extra_and_frame_vars(self):
        event = {
            "extra": {"access_key": "AKIA", "bucket": "b", "nested": {"secret_key": "s"}},
            "exception": {
                "values": [
                    {"stacktrace": {"frames": [{"vars": {"vercel_test_token": "t", "key": "k"}}]}},
                ]
            },
        }
        scrubbed = _scrub_secrets(event, None)
        assert scrubbed["extra"]["access_key"] == "[REDACTED]"
        assert scrubbed["extra"]["bucket"] == "b"
        assert scrubbed["extra"]["nested"]["secret_key"] == "[REDACTED]"
        frame_vars = scrubbed["exception"]["values"][0]["stacktrace"]["frames"][0]["vars"]
        assert frame_vars["vercel_test_token"] == "[REDACTED]"
        assert frame_vars["key"] == "k"

    def test_tolerates_missing_sections(self):
        assert _scrub_secrets({}, None) == {}
