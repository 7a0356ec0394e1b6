"""ffmpeg/ffprobe helpers for probing, thumbnails and audio extraction"""
import json
import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

THUMBNAIL_MAX_SIZE = 640
AUDIO_SAMPLE_RATE = 16000


class MediaToolError(Exception):
    """ffmpeg/ffprobe missing, timed out or failed"""


@dataclass
class MediaProbe:
    width: Optional[int] = None
    height: Optional[int] = None
    duration: Optional[float] = None


def _run(cmd, timeout: float) -> subprocess.CompletedProcess:
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
    except FileNotFoundError:
        raise MediaToolError(f"{cmd[0]} not found. Please install ffmpeg.")
    except subprocess.TimeoutExpired:
        raise MediaToolError(f"{cmd[0]} timed out")
    if result.returncode != 0:
        raise MediaToolError(f"{cmd[0]} failed: {result.stderr.strip()[-500:]}")
    return result


def probe_video(video_path: Path) -> MediaProbe:
    """Display width/height (rotation applied) and duration in seconds

    Raises:
        MediaToolError: If ffprobe is not available or the file cannot be analyzed
    """
    cmd = [
        'ffprobe',
        '-v', 'error',
        '-select_streams', 'v:0',
        '-show_entries', 'stream=width,height:stream_tags=rotate:format=duration',
        '-of', 'json',
        str(video_path)
    ]
    result = _run(cmd, timeout=30.0)
    try:
        data = json.loads(result.stdout or "{}")
    except ValueError as e:
        raise MediaToolError(f"Failed to parse ffprobe output: {e}")

    streams = data.get('streams') or [{}]
    stream = streams[0]
    width = stream.get('width')
    height = stream.get('height')
    rotation = abs(int((stream.get('tags') or {}).get('rotate', 0) or 0))
    if rotation in (90, 270):
        width, height = height, width

    duration = (data.get('format') or {}).get('duration')
    return MediaProbe(
        width=int(width) if width else None,
        height=int(height) if height else None,
        duration=float(duration) if duration else None,
    )


def extract_thumbnail(video_path: Path, output_path: Path, duration: Optional[float] = None) -> Path:
    """Single WebP frame, longest side at most THUMBNAIL_MAX_SIZE pixels"""
    seek = min(1.0, duration / 2) if duration else 0.0
    cmd = [
        'ffmpeg', '-y',
        '-ss', f"{seek:.2f}",
        '-i', str(video_path),
        '-frames:v', '1',
        '-vf', f"scale={THUMBNAIL_MAX_SIZE}:{THUMBNAIL_MAX_SIZE}:force_original_aspect_ratio=decrease",
        str(output_path)
    ]
    _run(cmd, timeout=60.0)
    return output_path


def extract_audio(video_path: Path, output_path: Path) -> Path:
    """Mono 16kHz WAV track, small enough to send inline for transcription"""
    cmd = [
        'ffmpeg', '-y',
        '-i', str(video_path),
        '-vn',
        '-ac', '1',
        '-ar', str(AUDIO_SAMPLE_RATE),
        '-f', 'wav',
        str(output_path)
    ]
    _run(cmd, timeout=300.0)
    return output_path
