from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import create_engine

from finalmessage.blockchain import BlockchainClient
from finalmessage.crud import Repository, init_db
from finalmessage.errors import NotificationFailed
from finalmessage.services import build_services


class FakeClock:
    def __init__(self, now=datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


class FakeNotifier:
    """Records every send; recipients listed in fail_for raise."""

    def __init__(self):
        self.sent = []
        self.fail_for = set()

    def send(self, verifier_id, message, channel="email", address=None):
        if verifier_id in self.fail_for:
            raise NotificationFailed(f"gateway rejected {verifier_id}")
        self.sent.append({"verifierId": verifier_id, "message": message, "channel": channel, "address": address})
        return {"status": "sent"}


class OfflineChain(BlockchainClient):
    def get_network_status(self):
        return {"connected": False}


@pytest.fixture
def engine():
    eng = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    init_db(eng)
    return eng


@pytest.fixture
def repo(engine):
    return Repository(engine)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def chain():
    return BlockchainClient(rpc_url="", wallet_secret="test-secret")


@pytest.fixture
def services(repo, notifier, chain, clock):
    return build_services(repo=repo, notifier=notifier, chain=chain, clock=clock, anchor_difficulty=1)


@pytest.fixture
def add_verifiers(repo):
    def _add(user_id, *verifier_ids):
        for vid in verifier_ids:
            repo.add_verifier({
                "verifier_id": vid,
                "user_id": user_id,
                "name": vid.upper(),
                "email": f"{vid}@example.com",
            })
    return _add
