"""
Tests for environment-driven configuration.
"""
from finalmessage.settings import Settings


class TestSettings:

    def test_defaults(self, monkeypatch):
        for name in ("RPC_URL", "CHAIN_ID", "INACTIVITY_THRESHOLD_DAYS", "INACTIVITY_SCAN_MINUTES", "ANCHOR_DIFFICULTY"):
            monkeypatch.delenv(name, raising=False)
        s = Settings(_env_file=None)

        assert s.RPC_URL is None
        assert s.CHAIN_ID == 80002
        assert s.INACTIVITY_THRESHOLD_DAYS == 365
        assert s.INACTIVITY_SCAN_MINUTES == 60
        assert s.ANCHOR_DIFFICULTY == 4
        assert s.MESSAGE_SECRET
        assert not hasattr(s, "HOST")

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("INACTIVITY_THRESHOLD_DAYS", "30")
        monkeypatch.setenv("MESSAGE_SECRET", "from-env")

        s = Settings(_env_file=None)
        assert s.INACTIVITY_THRESHOLD_DAYS == 30
        assert s.MESSAGE_SECRET == "from-env"
