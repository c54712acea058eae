"""Recommended rule set a new user can copy into their account.

File paths are placeholders: replace `user` with the local username and make
sure the media files exist before enabling the local agent.
"""

from __future__ import annotations

from .emotions import ActionKind, Emotion

DEFAULT_RULES: tuple[dict, ...] = (
    # Sad: uplifting and hopeful
    {
        "emotion": Emotion.SAD,
        "action": ActionKind.PLAY_MUSIC,
        "payload": "/home/user/Music/Uplifting/cinematic_hope_uplifting.wav",
        "enabled": True,
    },
    {
        "emotion": Emotion.SAD,
        "action": ActionKind.CHANGE_WALLPAPER,
        "payload": "/home/user/Pictures/Wallpapers/hopeful.jpg",
        "enabled": True,
    },
    {
        "emotion": Emotion.SAD,
        "action": ActionKind.SPEAK,
        "payload": "I've noticed you might be feeling down. I'm playing some uplifting music for you.",
        "enabled": False,  # spoken messages start off
    },
    # Angry: calming
    {
        "emotion": Emotion.ANGRY,
        "action": ActionKind.PLAY_MUSIC,
        "payload": "/home/user/Music/Calm/lofi_decompression_calm.wav",
        "enabled": True,
    },
    {
        "emotion": Emotion.ANGRY,
        "action": ActionKind.CHANGE_WALLPAPER,
        "payload": "/home/user/Pictures/Wallpapers/serene_blue.png",
        "enabled": True,
    },
    {
        "emotion": Emotion.ANGRY,
        "action": ActionKind.SPEAK,
        "payload": "Taking a moment to breathe. I've played some calming music to help you relax.",
        "enabled": True,
    },
    # Happy: complement without interrupting
    {
        "emotion": Emotion.HAPPY,
        "action": ActionKind.PLAY_MUSIC,
        "payload": "/home/user/Music/Energetic/funky_electronic_energetic.wav",
        "enabled": False,
    },
)
