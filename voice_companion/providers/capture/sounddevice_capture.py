"""
Microphone capture using sounddevice.

Audio is collected through a callback-based InputStream running in
sounddevice's audio thread, then encoded to 16-bit mono WAV on finalize.
"""

import asyncio
import io
import threading
import wave
from typing import Dict, Any, List, Optional

import numpy as np

try:
    import sounddevice as sd
except (ImportError, OSError):
    # OSError: the PortAudio shared library is missing
    sd = None

from ...interfaces.audio_capture import AudioCaptureInterface, CaptureHandle
from ...models.data_models import CapturedAudio
from ...utils.error_handling import CaptureUnavailable, NoAudioProduced
from ...utils.logging_config import get_logger


logger = get_logger("capture")


def frames_to_wav(frames: List[np.ndarray], sample_rate: int, channels: int = 1) -> bytes:
    """Encode int16 frames as WAV bytes."""
    pcm = np.concatenate(frames).astype(np.int16).tobytes() if frames else b""
    wav_buffer = io.BytesIO()
    with wave.open(wav_buffer, 'wb') as wav_file:
        wav_file.setnchannels(channels)
        wav_file.setsampwidth(2)  # 16-bit
        wav_file.setframerate(sample_rate)
        wav_file.writeframes(pcm)
    return wav_buffer.getvalue()


class SoundDeviceCaptureHandle(CaptureHandle):
    """One open InputStream. Single use."""

    def __init__(self, sample_rate: int, channels: int, blocksize: int, max_duration: float,
                 device: Optional[Any] = None):
        self.sample_rate = sample_rate
        self.channels = channels
        self.max_frames = int(max_duration * sample_rate) if max_duration > 0 else 0

        self._frames: List[np.ndarray] = []
        self._frame_count = 0
        self._lock = threading.Lock()
        self._closed = False
        self._limit_logged = False

        self._stream = sd.InputStream(
            samplerate=sample_rate,
            channels=channels,
            dtype='int16',
            blocksize=blocksize,
            device=device,
            callback=self._audio_callback
        )
        self._stream.start()

    def _audio_callback(self, indata: np.ndarray, frames: int, time_info, status) -> None:
        """Runs in sounddevice's audio thread."""
        if status:
            logger.debug(f"Audio callback status: {status}")
        with self._lock:
            if self._closed:
                return
            if self.max_frames and self._frame_count >= self.max_frames:
                if not self._limit_logged:
                    logger.warning("Maximum capture duration reached; ignoring further audio")
                    self._limit_logged = True
                return
            self._frames.append(indata.copy())
            self._frame_count += frames

    def _close_stream(self) -> None:
        stream = self._stream
        self._stream = None
        if stream is None:
            return
        try:
            if stream.active:
                stream.stop()
        except Exception as e:
            logger.warning(f"Audio stream stop error: {e}")
        try:
            stream.close()
        except Exception as e:
            logger.warning(f"Audio stream close error: {e}")

    def _take_frames(self) -> List[np.ndarray]:
        with self._lock:
            if self._closed:
                raise CaptureUnavailable("Capture already finalized or released")
            self._closed = True
            frames, self._frames = self._frames, []
        self._close_stream()
        return frames

    async def finalize(self) -> CapturedAudio:
        loop = asyncio.get_running_loop()
        frames = await loop.run_in_executor(None, self._take_frames)

        frame_count = sum(len(f) for f in frames)
        if frame_count == 0:
            raise NoAudioProduced("No audio was recorded")

        data = frames_to_wav(frames, self.sample_rate, self.channels)
        duration = frame_count / self.sample_rate
        logger.info(f"🎙️  Captured {duration:.2f}s of audio ({len(data) / 1024:.1f} KB)")
        return CapturedAudio(
            data=data,
            mime_type="audio/wav",
            sample_rate=self.sample_rate,
            duration=duration,
            metadata={'channels': self.channels}
        )

    def release(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._frames = []
        self._close_stream()
        logger.debug("Capture released")

    @property
    def is_open(self) -> bool:
        return not self._closed


class SoundDeviceCaptureProvider(AudioCaptureInterface):
    """
    Push-to-talk capture from the default (or configured) input device.

    Only one handle may be open at a time.
    """

    def __init__(self, config: Dict[str, Any]):
        """
        Args:
            config: Configuration dictionary containing:
                - sample_rate: Capture rate in Hz (default: 16000)
                - channels: Channel count (default: 1)
                - frames_per_buffer: Callback block size (default: 1024)
                - max_duration_seconds: Stop collecting after this long (default: 120)
                - device: Optional sounddevice device index or name
        """
        self.sample_rate = int(config.get('sample_rate', 16000))
        self.channels = int(config.get('channels', 1))
        self.frames_per_buffer = int(config.get('frames_per_buffer', 1024))
        self.max_duration = float(config.get('max_duration_seconds', 120))
        self.device = config.get('device')
        self._handle: Optional[SoundDeviceCaptureHandle] = None

    async def initialize(self) -> bool:
        if sd is None:
            logger.error("sounddevice is unavailable (is PortAudio installed?)")
            return False
        logger.info(f"✅ Capture ready ({self.sample_rate} Hz, {self.channels} channel)")
        return True

    async def has_permission(self) -> bool:
        if sd is None:
            return False
        loop = asyncio.get_running_loop()
        try:
            info = await loop.run_in_executor(None, lambda: sd.query_devices(self.device, kind='input'))
        except Exception as e:
            logger.warning(f"No usable input device: {e}")
            return False
        return bool(info) and info.get('max_input_channels', 0) > 0

    async def open(self) -> CaptureHandle:
        if sd is None:
            raise CaptureUnavailable("sounddevice is unavailable")
        if self._handle is not None and self._handle.is_open:
            raise CaptureUnavailable("A capture is already open")

        loop = asyncio.get_running_loop()
        try:
            handle = await loop.run_in_executor(
                None,
                lambda: SoundDeviceCaptureHandle(
                    self.sample_rate, self.channels, self.frames_per_buffer,
                    self.max_duration, self.device
                )
            )
        except Exception as e:
            raise CaptureUnavailable("Could not open the microphone", cause=e) from e

        self._handle = handle
        logger.info("🎙️  Microphone open")
        return handle

    async def cleanup(self) -> None:
        if self._handle is not None:
            self._handle.release()
            self._handle = None

    @property
    def capabilities(self) -> dict:
        return {
            'audio_formats': ['wav'],
            'sample_rates': [self.sample_rate],
            'channels': [self.channels],
            'max_duration_seconds': self.max_duration
        }
