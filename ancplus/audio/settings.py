#!/usr/bin/env python3

"""
Processing Settings

Pydantic models for the separation settings. Values are validated on
construction and the models are frozen, so settings are passed by value and
never mutated by the pipeline. Both snake_case and the camelCase keys used by
client payloads are accepted.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _SettingsModel(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class NoiseCancellation(_SettingsModel):
    enabled: bool = False
    intensity: float = Field(default=50, ge=0, le=100)


class TransparencyMode(_SettingsModel):
    enabled: bool = False
    level: float = Field(default=50, ge=0, le=100)
    selective_hearing: bool = False


class VoiceSeparation(_SettingsModel):
    enabled: bool = True
    sensitivity: float = Field(default=70, ge=0, le=100)


class BackgroundNoiseReduction(_SettingsModel):
    enabled: bool = False
    threshold: float = Field(default=30, ge=0, le=100)


class ProcessingSettings(_SettingsModel):
    """Settings consumed by a separation capability"""
    noise_cancellation: NoiseCancellation = Field(default_factory=NoiseCancellation)
    transparency_mode: TransparencyMode = Field(default_factory=TransparencyMode)
    voice_separation: VoiceSeparation = Field(default_factory=VoiceSeparation)
    background_noise_reduction: BackgroundNoiseReduction = Field(default_factory=BackgroundNoiseReduction)

    @classmethod
    def voice_only(cls, sensitivity: float = 70) -> 'ProcessingSettings':
        return cls(voice_separation=VoiceSeparation(enabled=True, sensitivity=sensitivity))

    def to_payload(self) -> dict:
        """camelCase dict as exchanged with clients"""
        return self.model_dump(by_alias=True)
