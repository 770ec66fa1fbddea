import logging

from amplifier.config.catalog import Catalog, load_catalog


def test_bundled_catalog_loads(catalog):
    assert isinstance(catalog, Catalog)
    assert catalog.version == "2.0.0"
    assert catalog.source == "bundled"
    assert "#IranRevolution2026" in catalog.fixed_prompt()
    assert catalog.default_user_prompt().startswith("## Content Strategy")


def test_include_and_exclude_partition(catalog):
    include_ids = [a.id for a in catalog.include_arguments()]
    exclude_ids = [a.id for a in catalog.exclusions()]
    assert include_ids == list(range(1001, 1015))
    assert exclude_ids == [1015]
    assert catalog.default_argument_ids() == include_ids


def test_default_ctas_skip_opt_in_entries(catalog):
    assert catalog.default_cta_ids() == list(range(2001, 2009))
    assert len(catalog.call_to_actions()) == 9


def test_models_and_pricing(catalog):
    assert catalog.default_model("openai") == "gpt-4o-mini"
    assert catalog.default_model("anthropic") == "claude-3-5-haiku-20241022"
    assert catalog.default_model("mistral") is None
    assert catalog.pricing("gpt-5.2").output == 14.0
    fallback = catalog.pricing("unknown-model")
    assert (fallback.input, fallback.output) == (0.25, 2.0)


def test_refusal_messages_and_shortcuts(catalog):
    assert catalog.refusal_message("violence").startswith("I can't assist with threats")
    assert catalog.refusal_message("nonexistent") == catalog.refusal_message("general")
    assert catalog.shortcuts()["//shorter"] == "Make the response more concise"


def test_invalid_override_falls_back_to_bundled(tmp_path, caplog):
    bad = tmp_path / "catalog.yaml"
    bad.write_text("version: 3\nmodels: not-a-dict\n")
    with caplog.at_level(logging.WARNING, logger="amplifier.config.catalog"):
        catalog = load_catalog(bad)
    assert catalog.source == "bundled"
    assert any("Invalid catalog override" in r.message for r in caplog.records)


def test_missing_override_falls_back_to_bundled(tmp_path):
    assert load_catalog(tmp_path / "nope.yaml").source == "bundled"


def test_valid_override_is_used(tmp_path):
    override = tmp_path / "catalog.yaml"
    override.write_text(
        "version: '9.9.9'\n"
        "models:\n"
        "  openai: [{id: gpt-4o-mini, name: Mini, default: true}]\n"
        "  anthropic: []\n"
        "pricing: {}\n"
        "prompts: {fixed: FIXED, default: STYLE}\n"
        "shortcuts: {}\n"
    )
    catalog = load_catalog(override)
    assert catalog.version == "9.9.9"
    assert catalog.fixed_prompt() == "FIXED"
    assert catalog.arguments() == []
