"""Skin profile models for the structured "skin passport"."""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

SkinType = Literal["oily", "dry", "combination", "normal", "sensitive", "unknown"]
Level = Literal["low", "medium", "high"]
OilProduction = Literal["low", "moderate", "high", "very_high"]
HydrationLevel = Literal["dehydrated", "normal", "well_hydrated"]
PoreSize = Literal["small", "medium", "large"]
ClimateZone = Literal["humid", "dry", "temperate", "cold"]
Exposure = Literal["low", "moderate", "high"]
Quality = Literal["poor", "fair", "good"]
ExerciseFrequency = Literal["none", "occasional", "regular", "frequent"]
RoutineFrequency = Literal["inconsistent", "regular", "very_consistent"]

_FROZEN = ConfigDict(frozen=True)


class LifestyleFactors(BaseModel):
    model_config = _FROZEN

    stress_level: Optional[Exposure] = None
    sleep_quality: Optional[Quality] = None
    diet_quality: Optional[Quality] = None
    exercise_frequency: Optional[ExerciseFrequency] = None


class CurrentRoutine(BaseModel):
    model_config = _FROZEN

    morning: list[str] = Field(default_factory=list)
    evening: list[str] = Field(default_factory=list)
    frequency: RoutineFrequency = "inconsistent"


class ProductPreferences(BaseModel):
    model_config = _FROZEN

    textures_preferred: list[str] = Field(default_factory=list)
    textures_disliked: list[str] = Field(default_factory=list)
    ingredients_loved: list[str] = Field(default_factory=list)
    ingredients_avoid: list[str] = Field(default_factory=list)


class ConfidenceScores(BaseModel):
    """Model self-reported confidence. Advisory only."""

    model_config = _FROZEN

    overall: float = Field(default=0.0, ge=0.0, le=1.0)
    skin_type: float = Field(default=0.0, ge=0.0, le=1.0)
    concerns: float = Field(default=0.0, ge=0.0, le=1.0)
    routine: float = Field(default=0.0, ge=0.0, le=1.0)


class ConversationMetadata(BaseModel):
    model_config = _FROZEN

    message_count: int = 0
    duration_minutes: int = 0
    quality_score: float = 0.0


class GeneratedProfile(BaseModel):
    model_config = _FROZEN

    skin_type: SkinType
    skin_concerns: list[str] = Field(default_factory=list)
    sensitivity_level: Level = "medium"
    oil_production: OilProduction = "moderate"
    hydration_level: HydrationLevel = "normal"
    pore_size: PoreSize = "medium"
    texture_issues: list[str] = Field(default_factory=list)
    climate_zone: Optional[ClimateZone] = None
    sun_exposure: Optional[Exposure] = None
    lifestyle_factors: LifestyleFactors = Field(default_factory=LifestyleFactors)
    current_routine: CurrentRoutine = Field(default_factory=CurrentRoutine)
    product_preferences: ProductPreferences = Field(default_factory=ProductPreferences)
    profile_summary: str
    key_recommendations: list[str] = Field(default_factory=list)
    confidence_scores: ConfidenceScores = Field(default_factory=ConfidenceScores)
    conversation_metadata: Optional[ConversationMetadata] = None

    def with_metadata(self, metadata: ConversationMetadata) -> "GeneratedProfile":
        """Copy with the conversation snapshot attached."""
        return self.model_copy(update={"conversation_metadata": metadata})

    def summary(self) -> str:
        """One-line profile summary for terminal output and logs."""
        parts = [f"Skin type: {self.skin_type}"]
        if self.skin_concerns:
            parts.append("Concerns: " + ", ".join(self.skin_concerns[:5]))
        parts.append(f"Sensitivity: {self.sensitivity_level}")
        if self.climate_zone:
            parts.append(f"Climate: {self.climate_zone}")
        return " | ".join(parts)
