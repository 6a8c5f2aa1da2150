# finalmessage/errors.py


class FinalMessageError(Exception):
    """Base exception for the release workflow"""
    pass


class NotTriggered(FinalMessageError):
    """Inactivity threshold has not been reached"""
    pass


class NoVerifiers(FinalMessageError):
    """User has no registered verifiers"""
    pass


class ProcessAlreadyPending(FinalMessageError):
    """User already has a verification process awaiting verifiers"""
    pass


class ProcessNotFound(FinalMessageError):
    pass


class WalletUnavailable(FinalMessageError):
    """Wallet could not be provisioned or the network is unreachable"""
    pass


class NoAnchor(FinalMessageError):
    """No anchored hash exists for the user"""
    pass


class IntegrityCheckFailed(FinalMessageError):
    """Stored message no longer matches its anchored hash"""
    pass


class NotificationFailed(FinalMessageError):
    """Notification to a single verifier failed"""
    pass


class DeliveryFailed(FinalMessageError):
    """Delivery to a single recipient failed"""
    pass


class StaleRecordError(FinalMessageError):
    """Record was modified by another writer since it was read"""
    pass
