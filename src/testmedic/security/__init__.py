"""Outbound sanitization, injection detection and generated-code screening."""

from testmedic.security.validator import (
    CodeSizeCheck,
    CodeValidation,
    SecurityValidator,
    detect_prompt_injection,
    sanitize_error_message,
    sanitize_for_prompt,
    validate_generated_code,
    validate_test_code_size,
)

__all__ = [
    "CodeSizeCheck",
    "CodeValidation",
    "SecurityValidator",
    "detect_prompt_injection",
    "sanitize_error_message",
    "sanitize_for_prompt",
    "validate_generated_code",
    "validate_test_code_size",
]
