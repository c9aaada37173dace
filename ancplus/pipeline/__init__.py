"""
Pipeline Module

Audio decode and separation pipeline producing stream sessions.
"""

from .audio_pipeline import AudioPipeline, StreamSession, SEPARATION_CAPABILITY

__all__ = [
    "AudioPipeline",
    "StreamSession",
    "SEPARATION_CAPABILITY"
]
