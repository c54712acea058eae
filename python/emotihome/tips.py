"""Wellness tips shown alongside the current emotion."""

from __future__ import annotations

import random

from .emotions import Emotion

DEFAULT_KEY = "default"

TIPS: dict[str, tuple[str, ...]] = {
    "happy": (
        "Gratitude is powerful. Take a moment to think of three things you're thankful for right now.",
        "Share the positivity! Call or message a friend to share your good mood.",
        "Channel that energy into a creative outlet or a short walk outside.",
    ),
    "sad": (
        "It's okay to feel this way. Acknowledge the feeling without judgment.",
        "Listen to some comforting or uplifting music. Music can be a great companion.",
        "Consider writing down your thoughts in a journal. It can help clarify your feelings.",
    ),
    "angry": (
        "Try the 4-7-8 breathing technique: Inhale for 4s, hold for 7s, exhale for 8s.",
        "Step away from the situation for a few minutes. A short break can provide a new perspective.",
        "Channel the energy into a physical activity, like a brisk walk or stretching.",
    ),
    "neutral": (
        "A neutral state is a great time for focus. Consider tackling a task you've been putting off.",
        "This is a perfect moment for a short mindfulness or meditation exercise.",
        "Check in with yourself. How are you feeling physically? Do you need to stretch or drink some water?",
    ),
    "surprise": (
        "Embrace the unexpected! Surprises can often lead to new opportunities or ideas.",
        "Take a deep breath to center yourself after the initial jolt.",
        "Reflect on what caused the surprise. Is there something new to learn from it?",
    ),
    "fear": (
        "Ground yourself by naming 5 things you can see, 4 things you can feel, and 3 things you can hear.",
        "Remind yourself that you are in a safe space. This feeling is temporary.",
        "Focus on slow, deep breaths to calm your nervous system.",
    ),
    DEFAULT_KEY: (
        "Regularly check in with your breath. It's a powerful anchor to the present moment.",
        "Ensure you're staying hydrated. A glass of water can do wonders for your focus.",
        "Remember to take short breaks to stretch and move your body, especially during long sessions.",
    ),
}


def tip_for(emotion: object, rng: random.Random | None = None) -> str:
    """Pick a random tip for `emotion`; unknown labels use the default tips."""
    key = Emotion.parse(emotion).value
    choices = TIPS.get(key, TIPS[DEFAULT_KEY])
    return (rng or random).choice(choices)


class TipPrinter:
    """Emotion-event callback that prints a new tip when the emotion changes."""

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng
        self._last: str | None = None

    def __call__(self, event) -> None:
        if event.emotion == self._last:
            return
        self._last = event.emotion
        print(f"[TIP] {tip_for(event.emotion, self._rng)}")
