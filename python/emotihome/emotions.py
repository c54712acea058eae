"""Closed vocabularies for trigger emotions and rule actions."""

from __future__ import annotations

from enum import Enum


class Emotion(str, Enum):
    """Canonical emotion labels. UNKNOWN marks an unclassifiable frame."""

    HAPPY = "happy"
    SAD = "sad"
    ANGRY = "angry"
    SURPRISE = "surprise"
    FEAR = "fear"
    NEUTRAL = "neutral"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: object) -> Emotion:
        """Normalize any label to a canonical Emotion.

        Case and surrounding whitespace are ignored and a few common synonyms
        used by analysis backends are folded in. Anything else (including
        None and non-strings) becomes UNKNOWN; this never raises.
        """
        if isinstance(value, Emotion):
            return value
        if not isinstance(value, str):
            return cls.UNKNOWN
        label = value.strip().lower()
        label = _SYNONYMS.get(label, label)
        try:
            return cls(label)
        except ValueError:
            return cls.UNKNOWN

    @classmethod
    def canonical(cls, value: object) -> Emotion:
        """Strict lookup: the label, lowercased, must be a canonical value.

        No trimming and no synonyms; anything else is UNKNOWN.
        """
        if isinstance(value, Emotion):
            return value
        if not isinstance(value, str):
            return cls.UNKNOWN
        try:
            return cls(value.lower())
        except ValueError:
            return cls.UNKNOWN

    @property
    def is_trigger(self) -> bool:
        """True for emotions a rule may trigger on."""
        return self is not Emotion.UNKNOWN


# Emotions a rule may use as a trigger, in display order
TRIGGER_EMOTIONS: tuple[Emotion, ...] = tuple(e for e in Emotion if e.is_trigger)

_SYNONYMS = {
    "happiness": "happy",
    "sadness": "sad",
    "anger": "angry",
    "surprised": "surprise",
    "fearful": "fear",
    "scared": "fear",
    "calm": "neutral",
}


class ActionKind(str, Enum):
    """What the local agent does when a rule fires."""

    PLAY_MUSIC = "play_music"
    CHANGE_WALLPAPER = "change_wallpaper"
    SPEAK = "speak"

    @classmethod
    def parse(cls, value: object) -> ActionKind:
        """Parse an action name; raises ValueError for anything unknown."""
        if isinstance(value, ActionKind):
            return value
        if not isinstance(value, str):
            raise ValueError(f"Invalid action: {value!r}")
        return cls(value.strip().lower())

    @property
    def payload_hint(self) -> str:
        """What the payload string means for this action."""
        return _PAYLOAD_HINTS[self]


_PAYLOAD_HINTS = {
    ActionKind.PLAY_MUSIC: "audio file or directory path",
    ActionKind.CHANGE_WALLPAPER: "image file path",
    ActionKind.SPEAK: "message to speak",
}
