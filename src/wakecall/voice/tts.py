"""
Speech synthesis into the audio cache.

Audio is produced by the ElevenLabs text-to-speech API and written under the
configured cache directory, which the app serves at ``/audio``. Filenames are
content hashes of (voice, text) so identical requests reuse one file.
"""

import hashlib
import time
from pathlib import Path

import anyio
import httpx

from wakecall.config import Settings, get_settings
from wakecall.shared.logging import get_logger
from wakecall.voices.catalog import elevenlabs_voice_id

logger = get_logger(__name__)

ELEVENLABS_TTS_URL = "https://api.elevenlabs.io/v1/text-to-speech/{voice_id}"
AUDIO_URL_PREFIX = "/audio"


class SpeechSynthesisError(Exception):
    """Raised when the speech provider cannot produce audio."""


class SpeechSynthesizer:
    def __init__(
        self,
        settings: Settings | None = None,
        http_client: httpx.Client | None = None,
        cache_dir: Path | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._http_client = http_client
        self._cache_dir = Path(cache_dir or self._settings.audio_cache_dir)

    @property
    def enabled(self) -> bool:
        return bool(self._settings.elevenlabs_api_key)

    @property
    def cache_dir(self) -> Path:
        return self._cache_dir

    def _get_client(self) -> httpx.Client:
        if self._http_client is None:
            self._http_client = httpx.Client(timeout=httpx.Timeout(60.0))
        return self._http_client

    @staticmethod
    def filename_for(voice: str, text: str) -> str:
        digest = hashlib.sha256(f"{voice}\n{text}".encode("utf-8")).hexdigest()[:32]
        return f"{voice}-{digest}.mp3"

    def public_url(self, filename: str) -> str:
        base = self._settings.public_base_url.rstrip("/")
        return f"{base}{AUDIO_URL_PREFIX}/{filename}"

    def synthesize_sync(self, text: str, voice: str) -> str:
        """Render ``text`` in ``voice`` and return its public URL.

        Raises:
            SpeechSynthesisError: When synthesis is disabled or fails.
        """
        if not self.enabled:
            raise SpeechSynthesisError("Speech synthesis is not configured")

        filename = self.filename_for(voice, text)
        path = self._cache_dir / filename
        if path.exists() and path.stat().st_size > 0:
            return self.public_url(filename)

        try:
            r = self._get_client().post(
                ELEVENLABS_TTS_URL.format(voice_id=elevenlabs_voice_id(voice)),
                json={
                    "text": text,
                    "model_id": "eleven_multilingual_v2",
                    "voice_settings": {
                        "stability": 0.5,
                        "similarity_boost": 0.8,
                        "style": 0.0,
                        "use_speaker_boost": True,
                    },
                },
                headers={
                    "Accept": "audio/mpeg",
                    "xi-api-key": self._settings.elevenlabs_api_key,
                },
            )
        except httpx.HTTPError as e:
            raise SpeechSynthesisError(f"HTTP error: {e!s}") from e

        if r.status_code != 200 or not r.content:
            logger.warning(
                "ElevenLabs synthesis failed",
                extra={"status_code": r.status_code, "voice": voice},
            )
            raise SpeechSynthesisError(f"ElevenLabs error {r.status_code}")

        self._cache_dir.mkdir(parents=True, exist_ok=True)
        path.write_bytes(r.content)
        logger.info("Audio synthesized", extra={"voice": voice, "file": filename})
        return self.public_url(filename)

    async def synthesize(self, text: str, voice: str) -> str:
        return await anyio.to_thread.run_sync(self.synthesize_sync, text, voice)

    def cleanup_sync(self, max_age_hours: int | None = None, now: float | None = None) -> int:
        """Delete cached audio older than ``max_age_hours``. Returns files removed."""
        if not self._cache_dir.is_dir():
            return 0
        max_age = (max_age_hours or self._settings.audio_max_age_hours) * 3600
        now = now if now is not None else time.time()

        removed = 0
        for path in self._cache_dir.iterdir():
            if path.is_file() and now - path.stat().st_mtime > max_age:
                path.unlink(missing_ok=True)
                removed += 1
        if removed:
            logger.info("Audio cache cleaned", extra={"removed": removed})
        return removed

    async def cleanup(self, max_age_hours: int | None = None) -> int:
        return await anyio.to_thread.run_sync(self.cleanup_sync, max_age_hours)


_synthesizer: SpeechSynthesizer | None = None


def get_speech_synthesizer() -> SpeechSynthesizer:
    global _synthesizer
    if _synthesizer is None:
        _synthesizer = SpeechSynthesizer()
    return _synthesizer
