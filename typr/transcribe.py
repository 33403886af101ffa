"""Speech-to-text transcription and transcript rewriting."""

from __future__ import annotations

import logging
import shutil
import subprocess
import tempfile
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

import httpx

from typr.errors import ConfigurationError, TranscriptionEmpty, TranscriptionFailed
from typr.text import strip_llm_preamble

if TYPE_CHECKING:
    from typr.config import Settings

logger = logging.getLogger(__name__)

OPENAI_BASE_URL = "https://api.openai.com/v1"
TRANSCRIPTION_MODEL = "whisper-1"
REWRITE_MODEL = "gpt-4o-mini"
TEMPERATURE = 0.2
LANGUAGE = "en"
LOCAL_MODEL = "base"
MIN_TRANSCRIPT_CHARS = 10


class Transcriber(ABC):
    """Turns an audio file into text."""

    name = "transcriber"

    def __init__(self, min_chars: int = MIN_TRANSCRIPT_CHARS) -> None:
        self._min_chars = min_chars

    def transcribe(
        self,
        audio_path: Path,
        context_prompt: str,
        timeout: float | None = None,
    ) -> str:
        """
        Transcribe an audio file.

        Args:
            audio_path: The recorded audio.
            context_prompt: Vocabulary/context hint for the engine.
            timeout: Upper bound for the engine call, in seconds.

        Returns:
            The trimmed transcript.

        Raises:
            TranscriptionFailed: The engine could not be reached or errored.
            TranscriptionEmpty: The transcript is shorter than ``min_chars``.
        """
        t0 = time.time()
        text = self._run(audio_path, context_prompt, timeout).strip()
        logger.info("%s transcription done in %.2fs: \"%s\"", self.name, time.time() - t0, text)
        if len(text) < self._min_chars:
            raise TranscriptionEmpty(text, self._min_chars)
        return text

    @abstractmethod
    def _run(self, audio_path: Path, context_prompt: str, timeout: float | None) -> str: ...


class LocalWhisperTranscriber(Transcriber):
    """Runs the openai-whisper command-line tool."""

    name = "local-whisper"

    def __init__(
        self,
        executable: str = "whisper",
        model: str = LOCAL_MODEL,
        output_dir: Path | None = None,
        min_chars: int = MIN_TRANSCRIPT_CHARS,
    ) -> None:
        super().__init__(min_chars)
        self._executable = executable
        self._model = model
        self._output_dir = output_dir or Path(tempfile.gettempdir()) / "typr"

    def is_available(self) -> bool:
        return shutil.which(self._executable) is not None

    def build_command(self, audio_path: Path, context_prompt: str) -> list[str]:
        command = [
            self._executable,
            str(audio_path),
            "--model", self._model,
            "--language", LANGUAGE,
            "--output_format", "txt",
            "--output_dir", str(self._output_dir),
            "--verbose", "False",
        ]
        if context_prompt.strip():
            command += ["--initial_prompt", context_prompt]
        return command

    def _run(self, audio_path: Path, context_prompt: str, timeout: float | None) -> str:
        self._output_dir.mkdir(parents=True, exist_ok=True)
        command = self.build_command(audio_path, context_prompt)
        logger.info("Using local Whisper for transcription: %s", audio_path)

        try:
            result = subprocess.run(command, capture_output=True, text=True, timeout=timeout)
        except FileNotFoundError as e:
            raise TranscriptionFailed(f"{self._executable} not found") from e
        except subprocess.TimeoutExpired as e:
            raise TranscriptionFailed(f"Local Whisper timed out after {timeout}s") from e

        if result.returncode != 0:
            raise TranscriptionFailed(f"Local Whisper failed: {result.stderr.strip()}")

        output_file = self._output_dir / f"{audio_path.stem}.txt"
        try:
            return output_file.read_text(encoding="utf-8")
        except OSError as e:
            raise TranscriptionFailed(f"Failed to read transcription output: {e}") from e
        finally:
            output_file.unlink(missing_ok=True)


class OpenAITranscriber(Transcriber):
    """Transcribes through the OpenAI audio transcription endpoint."""

    name = "openai"

    def __init__(
        self,
        api_key: str,
        client: httpx.Client | None = None,
        base_url: str = OPENAI_BASE_URL,
        model: str = TRANSCRIPTION_MODEL,
        min_chars: int = MIN_TRANSCRIPT_CHARS,
    ) -> None:
        super().__init__(min_chars)
        self._api_key = api_key
        self._client = client or httpx.Client()
        self._base_url = base_url.rstrip("/")
        self._model = model

    def _run(self, audio_path: Path, context_prompt: str, timeout: float | None) -> str:
        logger.info("Using OpenAI API for transcription: %s", audio_path)
        data = {
            "model": self._model,
            "response_format": "text",
            "language": LANGUAGE,
            "temperature": str(TEMPERATURE),
        }
        if context_prompt.strip():
            data["prompt"] = context_prompt + "\n\nTranscription:"

        try:
            audio = audio_path.read_bytes()
        except OSError as e:
            raise TranscriptionFailed(f"Cannot read audio {audio_path}: {e}") from e

        try:
            response = self._client.post(
                f"{self._base_url}/audio/transcriptions",
                headers={"Authorization": f"Bearer {self._api_key}"},
                data=data,
                files={"file": ("audio.wav", audio, "audio/wav")},
                timeout=timeout,
            )
        except httpx.HTTPError as e:
            raise TranscriptionFailed(f"OpenAI API unreachable: {e}") from e

        if response.is_error:
            raise TranscriptionFailed(
                f"OpenAI API error {response.status_code}: {response.text}"
            )
        return response.text


class Rewriter(ABC):
    @abstractmethod
    def rewrite(
        self,
        transcript: str,
        instruction_prompt: str,
        timeout: float | None = None,
    ) -> str: ...


class OpenAIRewriter(Rewriter):
    """Applies editor instructions with a chat model; never fails the session."""

    def __init__(
        self,
        api_key: str,
        client: httpx.Client | None = None,
        base_url: str = OPENAI_BASE_URL,
        model: str = REWRITE_MODEL,
        temperature: float = TEMPERATURE,
    ) -> None:
        self._api_key = api_key
        self._client = client or httpx.Client()
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._temperature = temperature

    def rewrite(
        self,
        transcript: str,
        instruction_prompt: str,
        timeout: float | None = None,
    ) -> str:
        """
        Rewrite a transcript following the instruction prompt.

        Args:
            transcript: The cleaned transcript.
            instruction_prompt: What the editor should do.
            timeout: Upper bound for the API call, in seconds.

        Returns:
            The rewritten text, or ``transcript`` unchanged on any failure.
        """
        try:
            rewritten = self._complete(transcript, instruction_prompt, timeout)
        except Exception as e:
            logger.error("Rewrite failed, keeping transcript: %s", e)
            return transcript

        if not rewritten:
            logger.warning("Rewrite returned empty text, keeping transcript")
            return transcript
        return rewritten

    def _complete(self, transcript: str, instruction_prompt: str, timeout: float | None) -> str:
        logger.info("Processing with %s", self._model)
        t0 = time.time()
        response = self._client.post(
            f"{self._base_url}/chat/completions",
            headers={"Authorization": f"Bearer {self._api_key}"},
            json={
                "model": self._model,
                "messages": [
                    {
                        "role": "user",
                        "content": f"Task: {instruction_prompt}\n\nTranscription: {transcript}",
                    }
                ],
                "temperature": self._temperature,
            },
            timeout=timeout,
        )
        response.raise_for_status()
        content = response.json()["choices"][0]["message"]["content"] or ""
        logger.info("Rewrite done in %.2fs", time.time() - t0)
        return strip_llm_preamble(content)


def create_transcribers(
    settings: "Settings",
    min_chars: int = MIN_TRANSCRIPT_CHARS,
    client: httpx.Client | None = None,
) -> list[Transcriber]:
    """
    Build the ordered list of engines to try.

    The local engine comes first when enabled and installed; the OpenAI API
    follows whenever an API key is available.
    """
    transcribers: list[Transcriber] = []

    if settings.use_local_engine:
        local = LocalWhisperTranscriber(min_chars=min_chars)
        if local.is_available():
            transcribers.append(local)
        else:
            logger.warning("Local Whisper enabled but the whisper CLI is not installed")

    api_key = settings.effective_api_key
    if api_key:
        transcribers.append(OpenAITranscriber(api_key, client=client, min_chars=min_chars))

    if not transcribers:
        raise ConfigurationError(
            "No OpenAI API key configured and local Whisper not available"
        )
    return transcribers


def create_rewriter(
    settings: "Settings",
    client: httpx.Client | None = None,
) -> Rewriter | None:
    api_key = settings.effective_api_key
    if not api_key:
        return None
    return OpenAIRewriter(api_key, client=client)
