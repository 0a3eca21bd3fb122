"""Typed failures raised by the fingerprinting core."""


class FingerprintError(Exception):
    """Base class for all audiomatch errors."""


class InvalidAudio(FingerprintError):
    """Empty or malformed sample buffer, or a non-positive sample rate."""


class UnsupportedRate(InvalidAudio):
    """Sample rate below the fingerprinting rate (we never upsample)."""

    def __init__(self, sample_rate, target_rate):
        super().__init__(
            f"Sample rate {sample_rate} Hz is not supported "
            f"(need at least {target_rate} Hz)"
        )
        self.sample_rate = sample_rate
        self.target_rate = target_rate


class NoFingerprint(FingerprintError):
    """Audio produced zero hashes, so it can never be matched."""


class IndexCorruption(FingerprintError):
    """An index record violates the catalog invariants."""
