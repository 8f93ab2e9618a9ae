from __future__ import annotations

import importlib.util
import logging
import os
import shutil
import subprocess
import sys
import time
from pathlib import Path

from .config import ENV_TTS_BACKEND
from .feedback import SessionToken

logger = logging.getLogger(__name__)


class OfflineSpeaker:
    """Best-effort offline TTS via isolated subprocesses.

    Utterances are tagged with the session token that requested them; a
    queued utterance whose session has been reset is dropped instead of
    spoken. A new prompt interrupts whatever is still being read out.
    """

    _max_queue = 8
    _max_utterance_s = 8.0

    def __init__(self, *, enabled: bool = True) -> None:
        self._enabled = False
        self._backends: list[str] = []
        self._backend: str | None = None
        self._pending: list[tuple[str, SessionToken]] = []
        self._active_proc: subprocess.Popen[bytes] | None = None
        self._active_started_s = 0.0

        if not enabled:
            return

        self._backends = self._resolve_backends()
        self._backend = self._backends[0] if self._backends else None
        self._enabled = self._backend is not None
        if not self._enabled:
            logger.info("no speech backend available; prompts will not be spoken")

    @property
    def enabled(self) -> bool:
        return bool(self._enabled)

    @property
    def pending_count(self) -> int:
        active = 1 if self._active_proc is not None else 0
        return active + len(self._pending)

    def speak(self, text: str, *, token: SessionToken, interrupt: bool = True) -> None:
        if not self._enabled:
            return
        phrase = " ".join(str(text).strip().split())
        if phrase == "":
            return
        if interrupt:
            self.stop()
        self._pending.append((phrase, token))
        if len(self._pending) > self._max_queue:
            del self._pending[: len(self._pending) - self._max_queue]

    def update(self) -> None:
        if not self._enabled:
            return

        proc = self._active_proc
        if proc is not None:
            if proc.poll() is None:
                if (time.monotonic() - self._active_started_s) > self._max_utterance_s:
                    self._terminate_process(proc)
                    self._active_proc = None
            else:
                self._active_proc = None

        if self._active_proc is not None:
            return

        self._pending = [(text, token) for text, token in self._pending if token.is_current()]
        while self._pending and self._enabled:
            next_text = self._pending[0][0]
            launched = self._launch_process(next_text)
            if launched is not None:
                del self._pending[0]
                self._active_proc = launched
                self._active_started_s = time.monotonic()
                return
            self._drop_current_backend()

        if not self._enabled:
            self._pending.clear()

    def stop(self) -> None:
        self._pending.clear()
        proc = self._active_proc
        self._active_proc = None
        if proc is not None:
            self._terminate_process(proc)

    @staticmethod
    def _terminate_process(proc: subprocess.Popen[bytes]) -> None:
        try:
            proc.terminate()
        except OSError:
            return
        try:
            proc.wait(timeout=0.5)
        except subprocess.TimeoutExpired:
            try:
                proc.kill()
            except OSError:
                pass

    @staticmethod
    def _resolve_backends() -> list[str]:
        supported = ("pyttsx3-subprocess", "say", "powershell", "espeak")
        forced = os.environ.get(ENV_TTS_BACKEND, "").strip().lower()
        if forced in supported and OfflineSpeaker._backend_available(forced):
            return [forced]

        candidates: list[str] = []
        if sys.platform == "darwin":
            candidates.append("say")
        if os.name == "nt":
            candidates.append("powershell")
        candidates.extend(("pyttsx3-subprocess", "espeak"))

        seen: set[str] = set()
        resolved: list[str] = []
        for name in candidates:
            if name in seen:
                continue
            seen.add(name)
            if OfflineSpeaker._backend_available(name):
                resolved.append(name)
        return resolved

    @staticmethod
    def _backend_available(name: str) -> bool:
        if name == "say":
            return (shutil.which("say") is not None) or Path("/usr/bin/say").exists()
        if name == "powershell":
            return (shutil.which("powershell") is not None) or (shutil.which("pwsh") is not None)
        if name == "pyttsx3-subprocess":
            return importlib.util.find_spec("pyttsx3") is not None
        if name == "espeak":
            return shutil.which("espeak") is not None
        return False

    def _drop_current_backend(self) -> None:
        backend = self._backend
        if backend is None:
            self._enabled = False
            return
        logger.info("speech backend %s failed; trying next", backend)
        self._backends = [name for name in self._backends if name != backend]
        self._backend = self._backends[0] if self._backends else None
        self._enabled = self._backend is not None

    def _launch_process(self, text: str) -> subprocess.Popen[bytes] | None:
        backend = self._backend
        if backend is None:
            return None

        # Slightly slower than default; place names are easier to catch.
        try:
            if backend == "pyttsx3-subprocess":
                script = (
                    "import sys\n"
                    "txt=' '.join(sys.argv[1:]).strip()\n"
                    "import pyttsx3\n"
                    "e=pyttsx3.init()\n"
                    "e.setProperty('rate', 165)\n"
                    "e.setProperty('volume', 1.0)\n"
                    "e.say(txt)\n"
                    "e.runAndWait()\n"
                )
                return subprocess.Popen(
                    [sys.executable, "-c", script, text],
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.DEVNULL,
                )

            if backend == "say":
                return subprocess.Popen(
                    [shutil.which("say") or "/usr/bin/say", "-r", "165", text],
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.DEVNULL,
                )

            if backend == "powershell":
                ps_bin = shutil.which("powershell") or shutil.which("pwsh")
                if ps_bin is None:
                    return None
                script = (
                    "Add-Type -AssemblyName System.Speech; "
                    "$s=New-Object System.Speech.Synthesis.SpeechSynthesizer; "
                    "$s.Rate=0; "
                    "$txt=($args -join ' '); "
                    "$s.Speak($txt);"
                )
                return subprocess.Popen(
                    [ps_bin, "-NoProfile", "-NonInteractive", "-Command", script, text],
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.DEVNULL,
                )

            if backend == "espeak":
                return subprocess.Popen(
                    ["espeak", "-s", "165", text],
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.DEVNULL,
                )
        except OSError:
            return None
        return None
