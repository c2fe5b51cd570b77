"""Assistant personality and voice schemas."""

from typing import Optional
from pydantic import BaseModel, Field


LANGUAGE_NAMES = {
    "en-ZA": "English",
    "en-US": "English",
    "af-ZA": "Afrikaans",
    "zu-ZA": "isiZulu",
    "xh-ZA": "isiXhosa",
    "nso-ZA": "Sepedi",
}


class VoiceSettings(BaseModel):
    """Speech output and recognition language settings."""
    rate: float = Field(0.8, ge=0.1, le=2.0, description="Speaking rate")
    pitch: float = Field(1.0, ge=0.5, le=2.0, description="Speaking pitch")
    language: str = Field("en-ZA", description="BCP-47 language tag")


class RoleSpecialization(BaseModel):
    """Role-specific greeting and tone."""
    greeting: str
    tone: str


class Personality(BaseModel):
    """Assistant persona used to build the role directive."""
    name: str = "Dash"
    greeting: str = "Hi! I'm Dash, your AI teaching assistant. How can I help you today?"
    response_style: str = "adaptive"
    voice_settings: VoiceSettings = Field(default_factory=VoiceSettings)
    role_specializations: dict[str, RoleSpecialization] = Field(
        default_factory=lambda: {
            "teacher": RoleSpecialization(
                greeting="Hello! I'm Dash, your teaching assistant. Ready to help with lesson planning, grading, and classroom management!",
                tone="encouraging and professional",
            ),
            "principal": RoleSpecialization(
                greeting="Good day! I'm Dash, here to help you lead your school to success today.",
                tone="professional and strategic",
            ),
            "parent": RoleSpecialization(
                greeting="Hi there! I'm Dash, here to help you support your child's learning journey.",
                tone="warm and supportive",
            ),
        }
    )

    def language_name(self) -> str:
        """Human-readable name of the configured reply language."""
        return LANGUAGE_NAMES.get(self.voice_settings.language, "English")

    def build_directive(self, role: Optional[str] = None) -> str:
        """
        Build the language/role directive prepended to every model request.

        Args:
            role: Optional user role (teacher, principal, parent)

        Returns:
            Directive text
        """
        tag = self.voice_settings.language
        directive = (
            f"You are {self.name}, an AI assistant for educators. "
            f"Respond in {self.language_name()} ({tag}) unless the user explicitly "
            "requests a different language. Keep responses concise and clear for voice interaction."
        )
        specialization = self.role_specializations.get(role) if role else None
        if specialization:
            directive += f" The user is a {role}; keep your tone {specialization.tone}."
        return directive
