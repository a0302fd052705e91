"""Unit tests for trigger filter module."""

import pytest

from src.video_processor.trigger_filter import evaluate_path, evaluate_trigger


class TestEvaluateTrigger:
    """Tests for upload admission rules."""

    def test_accepts_source_video(self, settings):
        """Test that a video under the source namespace is accepted."""
        decision = evaluate_trigger("video-backgrounds/abc123.mp4", "video/mp4", settings)

        assert decision.accepted is True

    @pytest.mark.parametrize(
        "content_type",
        ["video/quicktime", "video/webm", "VIDEO/MP4"],
    )
    def test_accepts_any_video_content_type(self, settings, content_type):
        """Test that every video/* content type is admitted."""
        decision = evaluate_trigger("video-backgrounds/clip.mov", content_type, settings)

        assert decision.accepted is True

    def test_rejects_path_outside_namespace(self, settings):
        """Test that uploads outside the source namespace are ignored."""
        decision = evaluate_trigger("avatars/abc123.mp4", "video/mp4", settings)

        assert decision.accepted is False
        assert "outside" in decision.reason

    def test_rejects_prefix_lookalike(self, settings):
        """Test that a sibling namespace sharing the prefix is not admitted."""
        decision = evaluate_trigger("video-backgrounds-old/abc123.mp4", "video/mp4", settings)

        assert decision.accepted is False

    def test_rejects_published_variant(self, settings):
        """Test that the pipeline's own variants never retrigger it."""
        decision = evaluate_trigger(
            "video-backgrounds/variants/abc123-720p.mp4",
            "video/mp4",
            settings,
        )

        assert decision.accepted is False
        assert "generated" in decision.reason

    def test_rejects_webm_variant(self, settings):
        """Test that the WebM variant is rejected too."""
        decision = evaluate_trigger(
            "video-backgrounds/variants/abc123-720p.webm",
            "video/webm",
            settings,
        )

        assert decision.accepted is False

    def test_rejects_poster(self, settings):
        """Test that poster images are rejected by path before content type."""
        decision = evaluate_path("video-backgrounds/abc123-poster.jpg", settings)

        assert decision.accepted is False

    def test_rejects_legacy_variant_beside_source(self, settings):
        """Test that a -720p object written next to the source is treated as generated."""
        decision = evaluate_trigger("video-backgrounds/abc123-720p.mp4", "video/mp4", settings)

        assert decision.accepted is False

    @pytest.mark.parametrize("content_type", ["image/jpeg", "application/octet-stream", "", None])
    def test_rejects_non_video(self, settings, content_type):
        """Test that non-video content types are rejected."""
        decision = evaluate_trigger("video-backgrounds/abc123.jpg", content_type, settings)

        assert decision.accepted is False
        assert "not a video" in decision.reason

    def test_rejects_folder_placeholder(self, settings):
        """Test that console-created folder objects are ignored."""
        decision = evaluate_path("video-backgrounds/uploads/", settings)

        assert decision.accepted is False

    def test_respects_configured_prefix(self, settings):
        """Test that the namespace comes from settings."""
        custom = settings.model_copy(update={"source_prefix": "backgrounds"})

        assert evaluate_trigger("backgrounds/abc.mp4", "video/mp4", custom).accepted is True
        assert evaluate_trigger("video-backgrounds/abc.mp4", "video/mp4", custom).accepted is False
