"""Unit tests for validation utilities."""

import pytest

from lumina.core.errors import LuminaError, ValidationError
from lumina.core.validation import (
    validate_aspect_ratio,
    validate_email,
    validate_prompt_content,
    validate_style,
)


class TestValidationError:
    """Tests for ValidationError exception."""

    def test_validation_error_is_lumina_error(self):
        assert issubclass(ValidationError, LuminaError)

    def test_validation_error_message(self):
        msg = "Custom validation error"
        with pytest.raises(ValidationError, match=msg):
            raise ValidationError(msg)


class TestValidatePromptContent:
    """Tests for validate_prompt_content function."""

    def test_normal_prompt_passes(self):
        validate_prompt_content("A lighthouse on a cliff at dusk")  # Should not raise

    def test_prompt_too_long_raises(self):
        with pytest.raises(ValidationError, match="too long"):
            validate_prompt_content("x" * 10001)

    def test_custom_max_length(self):
        with pytest.raises(ValidationError):
            validate_prompt_content("x" * 11, max_length=10)

    @pytest.mark.parametrize("placeholder", ["error", "Error:", "  NULL  "])
    def test_placeholder_text_rejected(self, placeholder):
        with pytest.raises(ValidationError, match="Invalid prompt content"):
            validate_prompt_content(placeholder)

    def test_empty_prompt_allowed(self):
        """Empty prompts are a draft state; operations check for them."""
        validate_prompt_content("")


class TestValidateStyle:
    @pytest.mark.parametrize("style", ["None", "Cinematic", "Pixel Art"])
    def test_known_styles(self, style):
        validate_style(style)

    def test_unknown_style(self):
        with pytest.raises(ValidationError, match="Unknown style"):
            validate_style("Watercolour")

    def test_case_sensitive(self):
        with pytest.raises(ValidationError):
            validate_style("cinematic")


class TestValidateAspectRatio:
    @pytest.mark.parametrize("ratio", ["1:1", "16:9", "9:16", "4:3", "3:4"])
    def test_supported(self, ratio):
        validate_aspect_ratio(ratio)

    @pytest.mark.parametrize("ratio", ["2:1", "16x9", ""])
    def test_unsupported(self, ratio):
        with pytest.raises(ValidationError, match="Unsupported aspect ratio"):
            validate_aspect_ratio(ratio)


class TestValidateEmail:
    def test_valid(self):
        validate_email("ada@example.com")

    @pytest.mark.parametrize("email", ["", "   ", "ada", "@example.com", "ada@"])
    def test_invalid(self, email):
        with pytest.raises(ValidationError, match="valid email"):
            validate_email(email)
