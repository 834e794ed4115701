from __future__ import annotations

import math
import textwrap

import pytest

from mrflap.config_yaml import load_mrflap_config_yaml, mrflap_config_from_dict
from mrflap.configs import MrFlapConfig


def test_load_mrflap_config_yaml_partial_override(tmp_path):
    p = tmp_path / "mrflap.yaml"
    p.write_text(
        textwrap.dedent(
            """
            prediction:
              max_taps: 3
              idle_height: 0.5
            bar:
              max_frames_without_update: 4
            tapping:
              fallback_delay: 0.08
            failure_log_interval: 2.5
            """
        ).strip()
        + "\n",
        encoding="utf-8",
    )

    cfg = load_mrflap_config_yaml(p)

    assert int(cfg.prediction.max_taps) == 3
    assert float(cfg.prediction.idle_height) == pytest.approx(0.5)
    assert int(cfg.bar.max_frames_without_update) == 4
    assert float(cfg.tapping.fallback_delay) == pytest.approx(0.08)
    assert float(cfg.failure_log_interval) == pytest.approx(2.5)

    # 未覆盖的字段仍应使用默认值
    assert int(cfg.prediction.num_tries) == 1000
    assert float(cfg.player.angle_tolerance) == pytest.approx(0.07 * math.pi)


def test_load_mrflap_config_yaml_empty_file_gives_defaults(tmp_path):
    p = tmp_path / "empty.yaml"
    p.write_text("", encoding="utf-8")

    assert load_mrflap_config_yaml(p) == MrFlapConfig()


def test_load_mrflap_config_yaml_unknown_key_raises(tmp_path):
    p = tmp_path / "cfg.yaml"
    p.write_text("unknown_top_level: 1\n", encoding="utf-8")

    with pytest.raises(KeyError):
        _ = load_mrflap_config_yaml(p)


def test_unknown_nested_key_raises():
    with pytest.raises(KeyError):
        _ = mrflap_config_from_dict({"prediction": {"max_tapz": 3}})


def test_nested_node_must_be_mapping():
    with pytest.raises(TypeError):
        _ = mrflap_config_from_dict({"player": [1, 2]})


def test_invalid_values_are_rejected():
    with pytest.raises(ValueError):
        _ = mrflap_config_from_dict({"prediction": {"idle_height": 2.0}})
    with pytest.raises(ValueError):
        _ = mrflap_config_from_dict({"bar": {"width_tolerance": 0.0}})
    with pytest.raises(ValueError):
        _ = mrflap_config_from_dict({"tapping": {"fallback_delay": -0.1}})


def test_yaml_values_are_passed_through_unchanged(tmp_path):
    p = tmp_path / "cfg.yaml"
    p.write_text("tapping:\n  max_performed_taps: 8\n", encoding="utf-8")

    assert load_mrflap_config_yaml(p).tapping.max_performed_taps == 8
    with pytest.raises(TypeError):
        _ = mrflap_config_from_dict({"prediction": {"idle_height": [0.5]}})
