"""Speech synthesis: OpenAI TTS rendered as an inline mp3 data URL."""
import base64
import logging
from typing import Optional

from openai import AsyncOpenAI

from .config import Settings

logger = logging.getLogger(__name__)

# OpenAI TTS rejects inputs above 4096 chars
MAX_TTS_CHARS = 4096


class SpeechSynthesizer:
    def __init__(self, client: AsyncOpenAI, model: str = "tts-1", voice: str = "alloy"):
        self.client = client
        self.model = model
        self.voice = voice

    @classmethod
    def from_settings(cls, client: AsyncOpenAI, settings: Settings) -> "SpeechSynthesizer":
        return cls(client, settings.openai_tts_model, settings.openai_tts_voice)

    async def synthesize(self, text: str) -> Optional[str]:
        """Return ``data:audio/mpeg;base64,...`` or None. Never raises."""
        if not text or not text.strip():
            return None

        logger.info(f"TTS: synthesizing '{text[:50]}...' with {self.model}/{self.voice}")
        try:
            response = await self.client.audio.speech.create(
                model=self.model,
                voice=self.voice,
                input=text[:MAX_TTS_CHARS],
                response_format="mp3",
            )
            audio = response.content
        except Exception as e:
            logger.warning(f"Could not generate audio: {e}")
            return None

        if not audio:
            logger.warning("TTS returned empty audio")
            return None

        logger.info(f"TTS: received {len(audio)} bytes mp3")
        return f"data:audio/mpeg;base64,{base64.b64encode(audio).decode('ascii')}"
