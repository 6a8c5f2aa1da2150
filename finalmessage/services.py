# finalmessage/services.py
from dataclasses import dataclass
from typing import Optional

from finalmessage.activity import ActivityTracker
from finalmessage.anchoring import HashAnchorStore
from finalmessage.blockchain import BlockchainClient
from finalmessage.crud import Repository
from finalmessage.delivery import MessageReleaseDispatcher
from finalmessage.integrity import MessageIntegrityChecker
from finalmessage.models import utcnow
from finalmessage.notifier import default_notifier
from finalmessage.verification import VerificationProcessCoordinator
from finalmessage.wallets import WalletProvisioner


@dataclass
class Services:
    repo: Repository
    activity: ActivityTracker
    wallets: WalletProvisioner
    anchors: HashAnchorStore
    integrity: MessageIntegrityChecker
    dispatcher: MessageReleaseDispatcher
    coordinator: VerificationProcessCoordinator


def build_services(repo: Optional[Repository] = None, notifier=None, chain: Optional[BlockchainClient] = None,
                   clock=utcnow, anchor_difficulty: Optional[int] = None) -> Services:
    repo = repo or Repository()
    notifier = notifier or default_notifier()
    chain = chain or BlockchainClient()

    activity = ActivityTracker(repo, clock=clock)
    wallets = WalletProvisioner(repo, chain)
    anchors = HashAnchorStore(repo, chain, difficulty=anchor_difficulty)
    integrity = MessageIntegrityChecker(repo, anchors, wallets)
    dispatcher = MessageReleaseDispatcher(repo, integrity, notifier, clock=clock)
    coordinator = VerificationProcessCoordinator(repo, activity, dispatcher, notifier, clock=clock)
    return Services(repo, activity, wallets, anchors, integrity, dispatcher, coordinator)
