"""Tests for the inline markup validator."""

from __future__ import annotations

from pyloc.markup import MarkupError, MarkupErrorReason, MarkupValidator


class TestMarkupValidation:
    """Test cases for validating single strings."""

    def test_allowed_markup_is_clean(self) -> None:
        """Test that allow-listed tags and attributes pass."""
        validator = MarkupValidator()
        text = '<b>bold</b> <a href="https://example.com">link</a> <code class="py">x</code>'
        assert validator.validate(text) == []

    def test_plain_text_is_clean(self) -> None:
        """Test that text without tags and with entities passes."""
        assert MarkupValidator().validate("1 &lt; 2 &amp; fine") == []

    def test_invalid_tag(self) -> None:
        """Test that tags outside the allow-list are reported."""
        errors = MarkupValidator().validate("<div>hi</div>")
        assert errors[0] == MarkupError(MarkupErrorReason.INVALID_TAG, "div")

    def test_invalid_attribute(self) -> None:
        """Test that attributes outside the allow-list are reported."""
        errors = MarkupValidator().validate('<b style="x">hi</b>')
        assert errors == [MarkupError(MarkupErrorReason.INVALID_ATTRIBUTE, "b", "style")]
        assert str(errors[0]) == "invalid attribute 'style' on <b>"

    def test_unclosed_and_unopened(self) -> None:
        """Test structural errors."""
        validator = MarkupValidator()
        assert validator.validate("<b>open") == [MarkupError(MarkupErrorReason.UNCLOSED_TAG, "b")]
        assert validator.validate("close</i>") == [MarkupError(MarkupErrorReason.UNOPENED_TAG, "i")]

    def test_misnested_tags(self) -> None:
        """Test that a tag closed over an inner open tag reports the inner one."""
        errors = MarkupValidator().validate("<b><i>x</b>")
        assert errors == [MarkupError(MarkupErrorReason.UNCLOSED_TAG, "i")]


class TestMarkupRegressions:
    """Test cases for comparing a translation against its default text."""

    def test_inherited_errors_are_suppressed(self) -> None:
        """Test that errors already present in the default string are not reported."""
        assert MarkupValidator().regressions("<b>ok<i>", "<b>ok</b><i>") == []

    def test_new_errors_are_reported(self) -> None:
        """Test that errors introduced by the translation are reported."""
        residual = MarkupValidator().regressions("<b>ok</b>", "<b>ok")
        assert residual == [MarkupError(MarkupErrorReason.UNCLOSED_TAG, "b")]

    def test_only_excess_errors_are_reported(self) -> None:
        """Test that suppression is counted per reason."""
        residual = MarkupValidator().regressions("<b>one", "<b>one <i>two")
        assert len(residual) == 1
        assert residual[0].reason is MarkupErrorReason.UNCLOSED_TAG

    def test_custom_allow_list(self) -> None:
        """Test a validator with its own allow-list."""
        validator = MarkupValidator({"span": frozenset({"lang"})})
        assert validator.validate('<span lang="fr">x</span>') == []
        assert validator.validate("<b>x</b>")[0].reason is MarkupErrorReason.INVALID_TAG
