"""
Attention Scorer

Pure numeric helpers shared by every other layer: the weighted attention
formula, contextual exponential smoothing, a least-squares trend estimator
and the circadian / location multiplier tables.

Nothing here holds state, so the functions are safe to call from any
consumer concurrently.
"""
import math
from dataclasses import dataclass
from typing import Optional, Sequence

from aura_engine.types.cognitive import AttentionForecast, CognitiveStateType, clamp
from aura_engine.types.context import (
    ContextSnapshot,
    DistractionRisk,
    EnvironmentType,
    NoiseLevel,
)


DEFAULT_EMA_ALPHA = 0.3
FORECAST_WINDOW = 20
FORECAST_TIMEFRAME_SECONDS = 300.0

LOCATION_FACTOR_RANGE = (0.3, 1.5)

# Focused regimes respond quickly, strained ones smooth heavily
STATE_ALPHAS = {
    CognitiveStateType.DEEP_FOCUS: 0.4,
    CognitiveStateType.CREATIVE_FLOW: 0.35,
    CognitiveStateType.FRAGMENTED_ATTENTION: 0.2,
    CognitiveStateType.COGNITIVE_OVERLOAD: 0.1,
}

_ENVIRONMENT_FACTORS = {
    EnvironmentType.LIBRARY: 1.3,
    EnvironmentType.OFFICE: 0.9,
    EnvironmentType.COMMUTE: 0.6,
    EnvironmentType.OUTDOOR: 0.8,
}

_NOISE_FACTORS = {
    NoiseLevel.SILENT: 1.2,
    NoiseLevel.QUIET: 1.1,
    NoiseLevel.MODERATE: 0.95,
    NoiseLevel.NOISY: 0.7,
    NoiseLevel.VERY_NOISY: 0.5,
}

_RISK_FACTORS = {
    DistractionRisk.VERY_LOW: 1.1,
    DistractionRisk.LOW: 1.0,
    DistractionRisk.MEDIUM: 0.9,
    DistractionRisk.HIGH: 0.7,
    DistractionRisk.VERY_HIGH: 0.5,
}


@dataclass(frozen=True)
class TrendResult:
    slope: float
    next_value: float
    confidence: float


def normalize_blink_rate(blink_rate: float) -> float:
    """Map blinks/min onto [0,1]: 15/min or fewer is 0, 30/min or more is 1."""
    return clamp((blink_rate - 15) / 15)


def compute_attention(
    gaze_stability: float,
    head_stillness: float,
    normalized_blink: float,
    context: Optional[ContextSnapshot],
    cognitive_load: float,
) -> float:
    """
    Weighted attention score in [0,1].

    base = 0.5*gaze + 0.2*head + 0.3*(1 - blink), then scaled by the
    environment, the distraction risk and an overload dampener.
    """
    score = 0.5 * gaze_stability + 0.2 * head_stillness + 0.3 * (1 - normalized_blink)

    if context is not None:
        location = context.location
        if location.environment == EnvironmentType.LIBRARY:
            score *= 1.2
        elif location.environment == EnvironmentType.HOME:
            score *= location.privacy_level
        elif location.environment == EnvironmentType.COMMUTE:
            score *= 0.7

        if location.distraction_risk == DistractionRisk.HIGH:
            score *= 0.7

    if cognitive_load > 0.8:
        score *= 0.8

    return clamp(score)


def contextual_ema(
    raw: float,
    previous: float,
    state: Optional[CognitiveStateType],
    default_alpha: float = DEFAULT_EMA_ALPHA,
) -> float:
    """Exponential smoothing whose alpha depends on the current regime."""
    alpha = STATE_ALPHAS.get(state, default_alpha) if state is not None else default_alpha
    return ema(raw, previous, alpha)


def ema(raw: float, previous: float, alpha: float) -> float:
    if alpha >= 1.0:
        return raw
    if alpha <= 0.0:
        return previous
    return alpha * raw + (1 - alpha) * previous


def linear_trend(samples: Sequence[float]) -> TrendResult:
    """
    Ordinary least squares over (index, value).

    The projected next value is not clamped; callers working on 0-1 series
    clamp it. Confidence is R^2 scaled by min(1, n/10). Fewer than two
    samples give a flat trend with zero confidence.
    """
    n = len(samples)
    if n < 2:
        return TrendResult(slope=0.0, next_value=samples[-1] if n else 0.5, confidence=0.0)

    mean_x = (n - 1) / 2
    mean_y = sum(samples) / n

    sxx = sum((i - mean_x) ** 2 for i in range(n))
    sxy = sum((i - mean_x) * (y - mean_y) for i, y in enumerate(samples))
    syy = sum((y - mean_y) ** 2 for y in samples)

    slope = sxy / sxx
    intercept = mean_y - slope * mean_x
    next_value = slope * n + intercept

    # A flat series is fitted perfectly
    r_squared = (sxy * sxy) / (sxx * syy) if syy > 0 else 1.0
    confidence = clamp(r_squared * min(1.0, n / 10))

    return TrendResult(slope=slope, next_value=next_value, confidence=confidence)


def circadian_factor(hour: float) -> float:
    """Performance multiplier for a (fractional) hour of day."""
    h = math.floor(hour) % 24
    if 9 <= h <= 11:
        return 1.2
    if 14 <= h <= 16:
        return 1.1
    if 19 <= h <= 21:
        return 1.0
    if 6 <= h <= 8:
        return 0.9
    if h >= 22 or h <= 2:
        return 0.7
    if 2 < h <= 5:
        return 0.6
    return 0.8


def location_factor(context: Optional[ContextSnapshot]) -> float:
    """Environment x noise x distraction multiplier, clamped to [0.3, 1.5]."""
    if context is None:
        return 1.0
    location = context.location

    if location.environment == EnvironmentType.HOME:
        factor = location.privacy_level
    else:
        factor = _ENVIRONMENT_FACTORS.get(location.environment, 0.85)

    factor *= _NOISE_FACTORS.get(location.noise_level, 1.0)
    factor *= _RISK_FACTORS.get(location.distraction_risk, 1.0)

    low, high = LOCATION_FACTOR_RANGE
    return clamp(factor, low, high)


def forecast_attention(
    history: Sequence[float],
    context: Optional[ContextSnapshot],
    hour: Optional[float] = None,
) -> AttentionForecast:
    """Project attention ~5 minutes ahead from recent history and context."""
    trend = linear_trend(list(history)[-FORECAST_WINDOW:])
    if hour is None:
        hour = context.time.circadian_hour if context is not None else 12.0

    predicted = trend.next_value * circadian_factor(hour) * location_factor(context)
    return AttentionForecast(
        predicted_attention=clamp(predicted),
        slope=trend.slope,
        confidence=trend.confidence,
        timeframe_seconds=FORECAST_TIMEFRAME_SECONDS,
    )
