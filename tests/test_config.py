import pytest

from prompt_studio.config import load_ai_config, load_settings
from prompt_studio.cost import PROMPT_GENERATION, CostCalculator


def test_missing_settings_file_uses_defaults(tmp_path):
    cfg = load_settings(str(tmp_path / "missing.yaml"))

    assert cfg["ai"]["provider"] == "openai"
    assert cfg["features"][PROMPT_GENERATION]["base_cost"] == 10
    assert cfg["plans"]["pro"]["credits"] == 1000


def test_settings_file_merges_onto_defaults(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text(
        "ai:\n"
        "  provider: anthropic\n"
        "  model: claude-3-haiku-20240307\n"
        "features:\n"
        "  prompt_generation:\n"
        "    base_cost: 20\n",
        encoding="utf-8",
    )

    cfg = load_settings(str(path))
    ai_config = load_ai_config(cfg)

    assert ai_config.provider == "anthropic"
    assert ai_config.model == "claude-3-haiku-20240307"
    assert ai_config.default_complexity == "simple"
    # multipliers survive the partial override
    assert cfg["features"][PROMPT_GENERATION]["multipliers"]["complexity"]["complex"] == 2.0

    calc = CostCalculator.from_settings(cfg)
    result = calc.calculate_cost(PROMPT_GENERATION, "anthropic", "claude-3-haiku-20240307", "simple", 10)
    # 20 * 1.2 * 0.8
    assert result.total_cost == 20


def test_invalid_default_complexity_is_rejected():
    with pytest.raises(ValueError):
        load_ai_config({"ai": {"default_complexity": "extreme"}})
