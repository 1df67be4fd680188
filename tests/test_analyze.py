"""
Unit tests for ranking, classification, synthesis and the end-to-end pipeline.
"""

import numpy as np
import pytest

import analyze
from analyze import (
    EMPTY_GRADIENT, MOODY_GRADIENT,
    Color, Gradient, GradientSettings,
    analyze_image, brightness, classify, darken, derive_gradient,
    rank_and_classify, resolve_gradient, text_color_for_background,
    gradient_css, lighten, main, rank_palette, render, render_html,
    run_pipeline, saturation, synthesize, to_hex, to_rgb_string,
)

GRAY = (40, 40, 40, 255)
RED = (200, 30, 30, 255)


def solid(rgba, count):
    """Flat buffer of `count` identical RGBA pixels."""
    return np.tile(np.array(rgba, dtype=np.uint8), count)


class TestColorMetrics:
    """Saturation, brightness and formatting"""

    def test_saturation_of_black_is_zero(self):
        assert saturation(Color(0, 0, 0)) == 0

    def test_saturation_spread_over_max(self):
        assert saturation(Color(200, 100, 50)) == pytest.approx(75.0)
        assert saturation(Color(128, 128, 128)) == 0

    def test_brightness_uses_max_channel(self):
        assert brightness(Color(0, 0, 255)) == pytest.approx(100.0)
        assert brightness(Color(40, 40, 40)) == pytest.approx(40 / 255 * 100)

    def test_formatting(self):
        assert to_hex(Color(255, 8, 171)) == '#ff08ab'
        assert to_rgb_string(Color(22, 0, 249)) == 'rgb(22, 0, 249)'


class TestShading:
    """Darken/lighten bounds"""

    def test_lighten_clamps_at_255(self):
        assert lighten(Color(240, 240, 240)) == Color(255, 255, 255)

    def test_darken_black_stays_black(self):
        assert darken(Color(0, 0, 0)) == Color(0, 0, 0)

    def test_floor_applied(self):
        assert darken(Color(32, 32, 32)) == Color(22, 22, 22)
        assert lighten(Color(192, 0, 0)) == Color(249, 0, 0)

    def test_custom_factor(self):
        assert darken(Color(200, 100, 10), factor=0.5) == Color(100, 50, 5)
        assert lighten(Color(100, 50, 10), factor=1.0) == Color(200, 100, 20)


class TestRankPalette:
    """Frequency ordering"""

    def test_descending_by_count(self):
        histogram = {(0, 0, 0): 1, (32, 32, 32): 5, (64, 0, 0): 3}
        assert rank_palette(histogram) == [Color(32, 32, 32), Color(64, 0, 0), Color(0, 0, 0)]

    def test_ties_keep_first_seen_order(self):
        histogram = {(224, 0, 0): 2, (0, 224, 0): 4, (0, 0, 224): 2, (96, 96, 96): 2}
        assert rank_palette(histogram) == [
            Color(0, 224, 0), Color(224, 0, 0), Color(0, 0, 224), Color(96, 96, 96),
        ]

    def test_empty(self):
        assert rank_palette({}) == []


class TestClassify:
    """Dominant/accent selection and mood"""

    def test_accent_is_fourth_ranked(self):
        palette = [Color(i * 32, 0, 0) for i in range(6)]
        result = classify(palette)
        assert result.dominant == palette[0]
        assert result.accent == palette[3]

    def test_accent_falls_back_to_last_available(self):
        palette = [Color(32, 32, 32), Color(64, 64, 64)]
        assert classify(palette).accent == palette[1]
        assert classify(palette[:1]).accent == palette[0]

    def test_dark_desaturated_is_moody(self):
        result = classify([Color(32, 32, 32), Color(0, 0, 0)])
        assert result.is_moody
        assert not result.has_vibrancy

    def test_bright_dominant_is_not_moody(self):
        result = classify([Color(192, 192, 192)])
        assert result.dominant_brightness >= 60
        assert not result.is_moody

    def test_saturated_dominant_is_not_moody(self):
        assert not classify([Color(96, 64, 64)]).is_moody

    def test_vibrancy_in_top_five_overrides(self):
        palette = [Color(32, 32, 32)] + [Color(0, 0, 0)] * 3 + [Color(0, 0, 128)]
        result = classify(palette)
        assert result.has_vibrancy
        assert not result.is_moody

    def test_vibrancy_outside_window_ignored(self):
        palette = [Color(32, 32, 32)] + [Color(0, 0, 0)] * 4 + [Color(0, 0, 128)]
        assert classify(palette).is_moody

    def test_saturation_threshold_is_strict(self):
        # (128 - 96) / 128 == 25% exactly
        settings = GradientSettings(vibrancy_saturation=25)
        assert not classify([Color(32, 32, 32), Color(128, 96, 96)], settings).has_vibrancy
        assert classify([Color(32, 32, 32), Color(128, 95, 95)], settings).has_vibrancy

    def test_empty_palette_raises(self):
        with pytest.raises(ValueError):
            classify([])


class TestSynthesize:
    """Gradient endpoints and literal formats"""

    def test_moody_uses_hex_pair(self):
        gradient = synthesize(classify([Color(32, 32, 32)]))
        assert gradient == Gradient('#000000', '#666666')

    def test_vivid_uses_rgb_pair(self):
        gradient = synthesize(classify([Color(32, 32, 32), Color(192, 0, 0)]))
        assert gradient == Gradient('rgb(22, 22, 22)', 'rgb(249, 0, 0)')

    def test_shade_factor_setting(self):
        settings = GradientSettings(shade_factor=0.5)
        gradient = synthesize(classify([Color(200, 100, 0)], settings), settings)
        assert gradient == Gradient('rgb(100, 50, 0)', 'rgb(255, 150, 0)')


class TestStageHelpers:
    """Shared stage 2/3 entry points"""

    def test_empty_histogram_is_not_classified(self):
        assert rank_and_classify({}) == ([], None)

    def test_rank_and_classify(self):
        palette, classification = rank_and_classify({(32, 32, 32): 1, (192, 0, 0): 3})
        assert palette == [Color(192, 0, 0), Color(32, 32, 32)]
        assert classification.dominant == Color(192, 0, 0)

    def test_resolve_gradient_default_without_classification(self):
        assert resolve_gradient(None) == EMPTY_GRADIENT

    def test_resolve_gradient_synthesizes(self):
        assert resolve_gradient(classify([Color(32, 32, 32)])) == MOODY_GRADIENT


class TestDeriveGradient:
    """End-to-end properties"""

    def test_transparent_buffer_gives_default(self):
        gradient = derive_gradient(solid((90, 180, 45, 0), 64))
        assert gradient == EMPTY_GRADIENT
        assert gradient.to_dict() == {'startColor': '#000000', 'endColor': '#444444'}

    def test_zero_length_buffer_gives_default(self):
        assert derive_gradient([]) == EMPTY_GRADIENT

    def test_uniform_dark_gray_is_moody(self):
        gradient = derive_gradient(solid(GRAY, 64))
        assert gradient == MOODY_GRADIENT
        assert gradient.to_dict() == {'startColor': '#000000', 'endColor': '#666666'}

    def test_vibrancy_override(self):
        buffer = np.concatenate([solid(GRAY, 320), solid(RED, 80)])
        result = run_pipeline(buffer)

        assert result.histogram == {(32, 32, 32): 80, (192, 0, 0): 20}
        assert result.classification.dominant == Color(32, 32, 32)
        assert result.classification.accent == Color(192, 0, 0)
        assert not result.classification.is_moody
        assert result.gradient == Gradient('rgb(22, 22, 22)', 'rgb(249, 0, 0)')

    def test_single_color_accent_fallback(self):
        result = run_pipeline(solid((100, 150, 200, 255), 32))
        c = result.classification
        assert c.accent == c.dominant == Color(96, 128, 192)
        assert result.gradient == Gradient(
            to_rgb_string(darken(c.dominant)), to_rgb_string(lighten(c.dominant))
        )

    def test_deterministic(self):
        rng = np.random.default_rng(11)
        buffer = rng.integers(0, 256, size=5000 * 4, dtype=np.uint8)
        first = run_pipeline(buffer)
        second = run_pipeline(buffer)
        assert first.gradient == second.gradient
        assert list(first.histogram.items()) == list(second.histogram.items())

    def test_empty_result_skips_classification(self):
        result = run_pipeline(solid(GRAY, 3), GradientSettings(alpha_threshold=256))
        assert result.classification is None
        assert result.palette == []
        assert result.mood == 'empty'

    def test_step_setting(self):
        # Only pixel 0 is red; step 1 sees the gray majority instead
        buffer = np.concatenate([solid(RED, 1), solid(GRAY, 3)])
        assert derive_gradient(buffer).start_color == 'rgb(134, 0, 0)'
        assert derive_gradient(buffer, GradientSettings(sample_step=1)).start_color == 'rgb(22, 22, 22)'


class TestGradientSettings:
    """Validation of tunable parameters"""

    def test_defaults(self):
        settings = GradientSettings()
        assert settings.sample_step == 4
        assert settings.bucket_size == 32
        assert settings.alpha_threshold == 128

    @pytest.mark.parametrize('kwargs', [
        {'sample_step': 0},
        {'bucket_size': 0},
        {'bucket_size': 300},
        {'alpha_threshold': -1},
        {'accent_rank': -1},
        {'vibrancy_window': 0},
        {'shade_factor': 1.5},
    ])
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            GradientSettings(**kwargs)


class TestRender:
    """CSS snippet, prose and HTML"""

    def test_gradient_css(self):
        css = gradient_css(Gradient('rgb(22, 22, 22)', 'rgb(249, 0, 0)'))
        assert css == 'background: linear-gradient(135deg, rgb(22, 22, 22), rgb(249, 0, 0));'

    def test_prose_for_vivid_image(self):
        buffer = np.concatenate([solid(GRAY, 320), solid(RED, 80)])
        prose = render(run_pipeline(buffer))
        assert 'MOOD: vibrant' in prose
        assert 'background: linear-gradient(135deg, rgb(22, 22, 22), rgb(249, 0, 0));' in prose
        assert '#202020 rgb(32, 32, 32) 80.0%' in prose
        assert '#c00000 rgb(192, 0, 0) 20.0%' in prose

    def test_prose_for_empty_image(self):
        prose = render(run_pipeline([]))
        assert 'MOOD: empty' in prose
        assert 'default gradient' in prose

    def test_html_escapes_path(self):
        html = render_html(run_pipeline(solid(GRAY, 8)), '<img>.png')
        assert '&lt;img&gt;.png' in html
        assert '<img>.png' not in html
        assert 'linear-gradient(135deg, #000000, #666666)' in html

    def test_label_color_follows_background_brightness(self, monkeypatch):
        assert text_color_for_background(Color(192, 192, 192)) == '#000'
        assert text_color_for_background(Color(32, 32, 32)) == '#fff'

        monkeypatch.setattr(analyze, 'LIGHT_BACKGROUND_BRIGHTNESS', 90)
        assert text_color_for_background(Color(192, 192, 192)) == '#fff'

    def test_analyze_image(self, make_image):
        path = make_image(rgba=(40, 40, 40, 255))
        prose, html = analyze_image(str(path))
        assert 'MOOD: moody' in prose
        assert '<!DOCTYPE html>' in html


class TestCli:
    """Command-line entry point"""

    def test_css_only(self, make_image, capsys):
        path = make_image(rgba=(40, 40, 40, 255))
        assert main(['--input', str(path), '--css']) == 0
        out = capsys.readouterr().out.strip()
        assert out == 'background: linear-gradient(135deg, #000000, #666666);'

    def test_writes_reports(self, make_image, tmp_path):
        path = make_image(rgba=(250, 120, 10, 255), name='sunset.png')
        preview = tmp_path / 'preview.png'
        assert main(['--input', str(path), '--output', '--preview', str(preview)]) == 0
        assert (tmp_path / 'sunset-gradient.html').exists()
        assert preview.exists()

    def test_missing_file(self, tmp_path, capsys):
        assert main(['--input', str(tmp_path / 'missing.png')]) == 1
        assert 'Image not found' in capsys.readouterr().err

    def test_invalid_step(self, make_image, capsys):
        path = make_image()
        assert main(['--input', str(path), '--step', '0']) == 2
        assert 'sample_step' in capsys.readouterr().err
