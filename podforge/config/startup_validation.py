"""
Startup Validation Module for PodForge.

Checks the credentials each pipeline stage needs and reports which
services are available, degraded or unavailable.
"""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from .settings import Settings

logger = logging.getLogger(__name__)


class ServiceStatus(Enum):
    """Status of a validated service."""
    AVAILABLE = "available"
    DEGRADED = "degraded"
    UNAVAILABLE = "unavailable"


@dataclass
class ValidationResult:
    """Result of a single validation check."""
    service: str
    status: ServiceStatus
    message: str
    required: bool = True
    details: Optional[Dict[str, Any]] = None


@dataclass
class StartupValidation:
    """Complete startup validation results."""
    is_valid: bool = True
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    services: Dict[str, ValidationResult] = field(default_factory=dict)

    def add_result(self, result: ValidationResult):
        """Add a validation result."""
        self.services[result.service] = result

        if result.status == ServiceStatus.UNAVAILABLE:
            if result.required:
                self.is_valid = False
                self.errors.append(f"[{result.service}] {result.message}")
            else:
                self.warnings.append(f"[{result.service}] {result.message}")
        elif result.status == ServiceStatus.DEGRADED:
            self.warnings.append(f"[{result.service}] {result.message}")

    def log_summary(self):
        """Log one line per service plus the overall verdict."""
        for service, result in self.services.items():
            if result.status == ServiceStatus.AVAILABLE:
                logger.info(f"{service}: {result.status.value}")
            else:
                logger.warning(f"{service}: {result.status.value} - {result.message}")

        if self.is_valid:
            logger.info("Startup validation passed")
        else:
            logger.error(f"Startup validation failed: {'; '.join(self.errors)}")


def validate_gemini_api(settings: Settings) -> ValidationResult:
    """Validate Gemini API key."""
    api_key = settings.gemini_api_key

    if not api_key:
        return ValidationResult(
            service="Gemini API",
            status=ServiceStatus.UNAVAILABLE,
            message="GEMINI_API_KEY not set. Curator, writer, cover art and embeddings will not work.",
            required=True,
        )

    if len(api_key) < 20:
        return ValidationResult(
            service="Gemini API",
            status=ServiceStatus.UNAVAILABLE,
            message="GEMINI_API_KEY appears to be invalid (too short).",
            required=True,
        )

    return ValidationResult(
        service="Gemini API",
        status=ServiceStatus.AVAILABLE,
        message="Gemini API configured",
    )


def validate_google_tts(settings: Settings) -> ValidationResult:
    """Validate Google Cloud TTS credentials (API key or service account file)."""
    if settings.google_tts_api_key:
        return ValidationResult(
            service="Google Cloud TTS",
            status=ServiceStatus.AVAILABLE,
            message="Using API key authentication",
        )

    path = settings.google_credentials_path
    if not path:
        return ValidationResult(
            service="Google Cloud TTS",
            status=ServiceStatus.DEGRADED,
            message="Neither GOOGLE_TTS_API_KEY nor GOOGLE_APPLICATION_CREDENTIALS set. Audio will never become ready.",
            required=False,
        )

    try:
        info = json.loads(Path(path).read_text())
    except (OSError, ValueError) as e:
        return ValidationResult(
            service="Google Cloud TTS",
            status=ServiceStatus.DEGRADED,
            message=f"Could not read service account file: {e}",
            required=False,
        )

    missing = [k for k in ("client_email", "private_key") if k not in info]
    if missing:
        return ValidationResult(
            service="Google Cloud TTS",
            status=ServiceStatus.DEGRADED,
            message=f"Service account file is missing: {', '.join(missing)}",
            required=False,
            details={"missing": missing},
        )

    return ValidationResult(
        service="Google Cloud TTS",
        status=ServiceStatus.AVAILABLE,
        message="Using service account authentication",
    )


def validate_supabase(settings: Settings) -> ValidationResult:
    """Validate Supabase credentials."""
    missing = []
    if not settings.supabase_url:
        missing.append("SUPABASE_URL")
    if not settings.supabase_service_key:
        missing.append("SUPABASE_SERVICE_KEY")

    if missing:
        return ValidationResult(
            service="Supabase",
            status=ServiceStatus.DEGRADED,
            message=f"Missing environment variables: {', '.join(missing)}. "
                    "Using local SQLite store and filesystem assets.",
            required=False,
            details={"missing": missing, "fallback": settings.database_url},
        )

    return ValidationResult(
        service="Supabase",
        status=ServiceStatus.AVAILABLE,
        message="Supabase configured",
    )


def run_startup_validation(settings: Settings, require_tts: bool = False) -> StartupValidation:
    """Run every check and collect the results."""
    validation = StartupValidation()
    validation.add_result(validate_gemini_api(settings))

    tts_result = validate_google_tts(settings)
    if require_tts and tts_result.status != ServiceStatus.AVAILABLE:
        tts_result.status = ServiceStatus.UNAVAILABLE
        tts_result.required = True
    validation.add_result(tts_result)

    validation.add_result(validate_supabase(settings))
    return validation
