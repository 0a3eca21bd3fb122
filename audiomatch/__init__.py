"""
audiomatch - identify audio clips against a catalog of registered songs.

Pipeline: resample -> spectrogram -> constellation peaks -> pair hashes,
then an inverted index and offset-histogram matching.
"""

from audiomatch.errors import (
    FingerprintError,
    IndexCorruption,
    InvalidAudio,
    NoFingerprint,
    UnsupportedRate,
)
from audiomatch.fingerprint import HashEntry, fingerprint_audio
from audiomatch.index import FingerprintIndex
from audiomatch.matcher import MatchResult, match_query
from audiomatch.recognizer import SongRecognizer

__all__ = [
    "FingerprintError",
    "FingerprintIndex",
    "HashEntry",
    "IndexCorruption",
    "InvalidAudio",
    "MatchResult",
    "NoFingerprint",
    "SongRecognizer",
    "UnsupportedRate",
    "fingerprint_audio",
    "match_query",
]
