"""Text helpers for rendering and exporting feedback."""

from __future__ import annotations

from models import FeedbackResult

SCORE_MAX = 10


def format_score(score: float) -> str:
    """Badge text for a score, e.g. ``"7/10"``."""
    if float(score).is_integer():
        return f"{int(score)}/{SCORE_MAX}"
    return f"{score:.1f}/{SCORE_MAX}"


def score_band(score: float) -> str:
    if score >= 8:
        return "good"
    if score >= 5:
        return "fair"
    return "poor"


def render_feedback_text(result: FeedbackResult) -> str:
    lines = [
        "Presentation Feedback",
        "",
        f"Overall Score: {format_score(result.score)}",
        "",
        "What Went Well:",
        result.positive_feedback,
        "",
        "Areas for Improvement:",
        result.improvement_points,
    ]
    if result.spoken_transcript:
        lines += ["", "What You Said:", result.spoken_transcript]
    rec = result.voice_recommendation
    if rec is not None:
        voice = rec.voice_option
        lines += [
            "",
            "Recommended Voice:",
            f"{voice.name} ({voice.gender}, {voice.accent}), tone: {rec.recommended_tone}",
            f"Confidence: {rec.confidence_score:.0%}",
        ]
        if rec.recommendation_reason:
            lines.append(rec.recommendation_reason)
    if result.audio_url:
        lines += ["", f"Ideal Delivery Audio: {result.audio_url}"]
    return "\n".join(lines) + "\n"
