class AudioConfig:
    """Configuration parameters for fingerprinting"""

    # Audio processing
    SAMPLE_RATE = 11025

    # Spectrogram parameters
    WINDOW_LENGTH = 1024
    HOP_LENGTH = 512


class PeakConfig:
    """Configuration for constellation peak picking"""

    # Octave-spaced bands, one peak per band per frame
    NUM_BANDS = 6

    # Running noise floor per band: floor = decay * floor + (1 - decay) * peak
    FLOOR_DECAY = 0.7

    # A peak must beat its band floor by this factor
    FLOOR_RATIO = 1.1

    # Absolute gate on normalized audio (full-scale sine at this window ~ 256)
    MIN_MAGNITUDE = 1.0


class HashConfig:
    """Configuration for hash generation"""

    # Target zone: only peaks in later frames, at most this many frames ahead
    PAIRING_WINDOW = 200

    # Fan-out: max number of target points per anchor
    FAN_OUT = 5

    # Hash packing: [f_anchor:10][f_target:10][delta:8] = 28 bits
    FREQ_BITS = 10
    DELTA_BITS = 8


class DatabaseConfig:
    """Configuration for catalog storage"""

    DB_FILE = "./data/db/catalog.sqlite3"


class MatchConfig:
    """Configuration for matching algorithm"""

    # Fraction of query hashes that must align at one offset
    CONFIDENCE_THRESHOLD = 0.3

    # Ranked candidates kept on a match result
    TOP_N = 5


def default_params():
    """Fingerprinting parameters as keyword arguments for fingerprint_audio()."""
    return {
        "target_rate": AudioConfig.SAMPLE_RATE,
        "window_length": AudioConfig.WINDOW_LENGTH,
        "hop_length": AudioConfig.HOP_LENGTH,
        "num_bands": PeakConfig.NUM_BANDS,
        "floor_decay": PeakConfig.FLOOR_DECAY,
        "floor_ratio": PeakConfig.FLOOR_RATIO,
        "min_magnitude": PeakConfig.MIN_MAGNITUDE,
        "fan_out": HashConfig.FAN_OUT,
        "pairing_window": HashConfig.PAIRING_WINDOW,
    }
