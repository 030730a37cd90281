"""
Voice personas offered for wake-up calls.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class Voice:
    id: str
    name: str
    description: str
    elevenlabs_voice_id: str


DEFAULT_VOICE_ID = "jocko"
FALLBACK_ELEVENLABS_VOICE_ID = "pNInz6obpgDQGcFmaJgB"

VOICES: dict[str, Voice] = {
    v.id: v
    for v in (
        Voice("liam", "Liam", "Warm, steady male voice", "TX3LPaxmHKxFdv7VOQHJ"),
        Voice("lily", "Lily", "Bright, encouraging female voice", "pFZP5JQG7iQjIQuC4Bku"),
        Voice("bill", "Bill", "Deep, commanding male voice", "pqHfZKP75CvOlQylNhV4"),
        Voice("todd-thomas", "Todd Thomas", "Calm, neutral narrator", "sflYrWiXii4ezPjNLQkp"),
        Voice("jocko", "Jocko", "Discipline-first drill instructor", "pQ4UJV5rfb04U3utkvKW"),
        Voice("radio-station", "Radio Station", "Upbeat morning radio host", "QTGiyJvep6bcx4WD1qAq"),
    )
}


def is_known_voice(voice_id: str) -> bool:
    return voice_id in VOICES


def elevenlabs_voice_id(voice_id: str) -> str:
    voice = VOICES.get(voice_id)
    return voice.elevenlabs_voice_id if voice else FALLBACK_ELEVENLABS_VOICE_ID
