import logging
import time
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

from .config import MatchConfig
from .logging_config import setup_logger

# setting up logger
logger = setup_logger(__name__, logging.INFO)


@dataclass
class Candidate:
    song_id: Any
    confidence: float
    score: int  # hits sharing the dominant offset
    offset: int  # catalog frame - query frame at the dominant offset
    num_matching_hashes: int


@dataclass
class MatchResult:
    song_id: Optional[Any]
    confidence: float
    aligned_count: int
    query_hash_count: int
    offset: Optional[int] = None
    candidates: List[Candidate] = field(default_factory=list)
    time_pairs: List[Tuple[int, int]] = field(default_factory=list, repr=False)

    @property
    def matched(self):
        return self.song_id is not None


def calculate_time_offsets(time_pairs):
    """
    Calculate time offsets for all matching hash pairs.

    If the query is an excerpt of a catalog song then, for every true hit,
        db_time = sample_time + offset (constant)

    Args:
        time_pairs: List of (sample_time, db_time) tuples

    Returns:
        offsets: List of offset values (db_time - sample_time)
    """
    return [db_time - sample_time for sample_time, db_time in time_pairs]


def find_peak_offset(offsets):
    """
    Find the most common offset using histogram analysis.
    This detects the "diagonal line" in the scatterplot.

    Anchor times are frame indices, so offsets are exact integers and every
    distinct offset is its own bin. Ties go to the smallest offset.

    Args:
        offsets: List of time offset values

    Returns:
        peak_offset: Most common offset value
        peak_count: Number of matches at this offset
        histogram: Counter object with all bins
    """
    if not offsets:
        return None, 0, Counter()

    histogram = Counter(offsets)
    peak_offset, peak_count = min(histogram.items(), key=lambda kv: (-kv[1], kv[0]))

    return peak_offset, peak_count, histogram


def score_match(time_pairs):
    """
    Score a potential match based on time alignment.

    Returns:
        score: Number of hits at the dominant offset
        offset: That offset, or None without hits
    """
    if not time_pairs:
        return 0, None

    peak_offset, peak_count, _ = find_peak_offset(calculate_time_offsets(time_pairs))
    return peak_count, peak_offset


def collect_hits(query_hashes, index):
    """
    Look up a query fingerprint and group the hits by song.

    Args:
        query_hashes: List of (hash, sample_time) tuples from query
        index: FingerprintIndex instance

    Returns:
        matches: Dict mapping song_id to list of (sample_time, db_time) pairs
    """
    records_by_hash = index.lookup(h for h, _ in query_hashes)

    matches = defaultdict(list)
    for hash_val, sample_time in query_hashes:
        for song_id, db_time in records_by_hash.get(hash_val, ()):
            matches[song_id].append((sample_time, db_time))

    return matches


def rank_candidates(matches_by_song, num_query_hashes):
    """
    Score every candidate song and sort best first.

    Confidence is the dominant-offset count over the number of query
    hashes, clamped to [0, 1]. Equal confidences are ordered by song id.
    """
    candidates = []
    for song_id, time_pairs in matches_by_song.items():
        score, offset = score_match(time_pairs)
        confidence = min(1.0, score / num_query_hashes) if num_query_hashes else 0.0
        candidates.append(
            Candidate(
                song_id=song_id,
                confidence=confidence,
                score=score,
                offset=offset,
                num_matching_hashes=len(time_pairs),
            )
        )

    candidates.sort(key=lambda c: (-c.confidence, c.song_id))
    return candidates


def match_query(
    query_hashes,
    index,
    threshold=MatchConfig.CONFIDENCE_THRESHOLD,
    top_n=MatchConfig.TOP_N,
):
    """
    Match a query fingerprint against the index.

    Args:
        query_hashes: List of (hash, sample_time) tuples from query
        index: FingerprintIndex instance
        threshold: Minimum confidence for a match
        top_n: Number of ranked candidates to keep on the result

    Returns:
        MatchResult; song_id is None when the best candidate is below
        threshold or nothing matched
    """
    num_query_hashes = len(query_hashes)
    if num_query_hashes == 0:
        logger.debug("Empty query fingerprint, no match")
        return MatchResult(song_id=None, confidence=0.0, aligned_count=0, query_hash_count=0)

    start_time = time.time()

    matches_by_song = collect_hits(query_hashes, index)
    candidates = rank_candidates(matches_by_song, num_query_hashes)

    query_time = time.time() - start_time
    logger.debug(
        f"Query: {num_query_hashes} hashes, {len(candidates)} candidate song(s), "
        f"{query_time * 1000:.1f} ms"
    )

    if not candidates:
        return MatchResult(
            song_id=None, confidence=0.0, aligned_count=0, query_hash_count=num_query_hashes
        )

    best = candidates[0]
    matched = best.confidence >= threshold

    if matched:
        logger.info(
            f"✓ Match: song {best.song_id!r} confidence={best.confidence:.3f} "
            f"({best.score}/{num_query_hashes} aligned at offset {best.offset})"
        )
    else:
        logger.info(
            f"✗ No match: best song {best.song_id!r} confidence={best.confidence:.3f} "
            f"< {threshold}"
        )

    return MatchResult(
        song_id=best.song_id if matched else None,
        confidence=best.confidence,
        aligned_count=best.score,
        query_hash_count=num_query_hashes,
        offset=best.offset,
        candidates=candidates[:top_n],
        time_pairs=matches_by_song[best.song_id],
    )
