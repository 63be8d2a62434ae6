"""Canned analysis served when Gemini is unavailable."""

from __future__ import annotations

from typing import Any

DEMO_ANALYSIS_RESULT: dict[str, Any] = {
    "title": "Secrets of virality",
    "original": {
        "transcription": (
            "Hey everyone! Today I'm going to show you the secret to making viral content. "
            "First, you need a strong hook in the first 3 seconds. Then keep the energy high, "
            "speak fast but clear, and don't forget to end with a call to action!"
        ),
        "translation": (
            "Hi everyone! Today I will show you the secret of making viral content. First, you "
            "need a strong hook in the first 3 seconds. Then keep the energy up, talk fast but "
            "clearly, and remember to finish with a call to action!"
        ),
    },
    "keys": [
        {
            "title": "Strong hook",
            "description": "The video opens with an intriguing question that makes the viewer stop and watch to the end.",
        },
        {
            "title": "Dynamic delivery",
            "description": "Fast speech, energetic intonation and confident delivery create a sense of urgency.",
        },
        {
            "title": "Clear structure",
            "description": "The content is split into obvious stages: hook, problem, solution, call to action.",
        },
        {
            "title": "Visual accents",
            "description": "Frequent angle changes, text overlays and emoji hold the viewer's attention.",
        },
        {
            "title": "Pause to sink in",
            "description": "Micro-pauses after key phrases let the viewer absorb the information.",
        },
    ],
    "script": [
        {
            "time": "0-3 s",
            "visual": "Close-up of the face",
            "text": "Want to know how I got 1 million views in a week?",
            "note": "Intriguing question with a concrete number",
        },
        {
            "time": "3-8 s",
            "visual": "Medium shot, gesturing",
            "text": "I used one simple trick that changes everything. And I'm about to show it to you!",
            "note": "Promise of value",
        },
        {
            "time": "8-15 s",
            "visual": "Demonstration (examples)",
            "text": "First, your hook has to be unexpected. Start with a question or a bold statement.",
            "note": "Practical tip #1",
        },
        {
            "time": "15-22 s",
            "visual": "Text on screen",
            "text": "Second, keep the pace. No filler, only concentrated value.",
            "note": "Practical tip #2",
        },
        {
            "time": "22-30 s",
            "visual": "Back to close-up",
            "text": "And third, finish with a call. Ask people to follow, save or comment.",
            "note": "Call to action",
        },
    ],
    "recommendations": [
        {
            "category": "Intonation",
            "text": "Use an energetic tone with stress on key words. Speak slightly faster than usual, but clearly.",
        },
        {
            "category": "Music",
            "text": "Pick an upbeat track from the TikTok/Reels library. Keep the music 30% quieter than the voice.",
        },
        {
            "category": "AI avatar",
            "text": "For an AI avatar: set up gestures for the key moments and add light transition animation.",
        },
        {
            "category": "Editing",
            "text": "Use jump cuts every 3-5 seconds. Add text overlays at 8 and 15 seconds.",
        },
    ],
    "is_demo_mode": True,
}
