"""Typing metrics engine.

Pure functions over a captured transcript and keystroke log. An average word
is taken to be five characters.
"""
import math
from typing import Sequence

from talent_screen.models.results import TypingMetrics

CHARS_PER_WORD = 5
MIN_CONSISTENCY_SAMPLES = 6


def round_half_up(value: float, digits: int = 0) -> float:
    """Round .5 away from zero for the non-negative values used here."""
    scale = 10 ** digits
    return math.floor(value * scale + 0.5) / scale


def live_wpm(text: str, elapsed_seconds: float) -> int:
    """Words per minute for the text typed so far."""
    minutes = elapsed_seconds / 60
    if minutes <= 0:
        return 0
    return int(round_half_up((len(text) / CHARS_PER_WORD) / minutes))


def keystroke_consistency(timestamps: Sequence[float]) -> int:
    """Score 0-100 from the spread of inter-keystroke intervals (ms)."""
    if len(timestamps) < MIN_CONSISTENCY_SAMPLES:
        return 0

    intervals = [later - earlier for earlier, later in zip(timestamps, timestamps[1:])]
    mean = sum(intervals) / len(intervals)
    variance = sum((x - mean) ** 2 for x in intervals) / len(intervals)
    std_dev = math.sqrt(variance)

    return int(round_half_up(max(0.0, min(100.0, 100 - std_dev / 10))))


def compute_typing_metrics(
    reference_text: str,
    typed_text: str,
    elapsed_seconds: float,
    keystroke_timestamps: Sequence[float] = (),
) -> TypingMetrics:
    """Compute WPM, accuracy and consistency for one typing attempt."""
    total_chars = len(typed_text)

    correct_chars = 0
    for i, char in enumerate(typed_text):
        # Characters past the end of the reference are errors
        if i < len(reference_text) and char == reference_text[i]:
            correct_chars += 1

    accuracy = round_half_up((correct_chars / total_chars) * 100, 1) if total_chars > 0 else 0.0
    if correct_chars < total_chars:
        # 100.0 is reserved for error-free input
        accuracy = min(accuracy, 99.9)

    return TypingMetrics(
        wpm=live_wpm(typed_text, elapsed_seconds),
        accuracy=accuracy,
        consistency=keystroke_consistency(keystroke_timestamps),
        elapsed_seconds=elapsed_seconds,
        keystrokes=len(keystroke_timestamps),
        total_chars=total_chars,
        correct_chars=correct_chars,
        error_chars=total_chars - correct_chars,
    )


def typing_passed(metrics: TypingMetrics, min_wpm: int = 35, min_accuracy: float = 85.0) -> bool:
    """Both thresholds must hold."""
    return metrics.wpm >= min_wpm and metrics.accuracy >= min_accuracy
