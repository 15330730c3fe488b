"""Tests for the service catalog YAML and prompt templates."""

from pathlib import Path

import pytest
import yaml

from leadflow.config import ServiceCatalog, load_service_catalog
from leadflow.services.oracle import load_prompt_template, render_prompt

SAMPLES_DIR = Path(__file__).parent.parent.parent / "samples"


class TestServiceCatalog:
    def test_load_services_yaml(self):
        path = SAMPLES_DIR / "services.yaml"
        with open(path) as f:
            config = yaml.safe_load(f)
        assert "services" in config
        assert "priority" in config

    def test_catalog_validates(self):
        catalog = load_service_catalog(SAMPLES_DIR / "services.yaml")
        assert catalog.generic_topic == "Generic Inquiry"
        assert catalog.is_generic("Generic Inquiry")
        assert "Google Ads Management" in catalog.services

    def test_priority_names_known_services(self):
        catalog = load_service_catalog(SAMPLES_DIR / "services.yaml")
        for topic in catalog.priority:
            assert topic in catalog.services

    def test_specific_topics_drop_generic_and_unknown(self):
        catalog = load_service_catalog()
        assert catalog.specific_topics(["Generic Inquiry", "Funnels", "Astrology"]) == ["Funnels"]

    def test_link_for_blank_link(self):
        catalog = load_service_catalog()
        assert catalog.link_for("Tech Strategy") is None
        assert catalog.link_for("Unknown") is None

    def test_empty_catalog(self):
        catalog = ServiceCatalog.model_validate({})
        assert catalog.services == {}
        assert catalog.specific_topics(["Funnels"]) == []


class TestPromptTemplates:
    """Verify prompt templates exist and render."""

    def test_classify_template_asks_for_json(self):
        content = load_prompt_template("reply_classify_v1")
        assert "classification_confidence" in content
        assert "identified_services" in content

    def test_templates_render(self):
        text = render_prompt("initial_email_v1", first_name="Ana", service="SEO", sender_name="Jose")
        assert "Ana" in text and "SEO" in text
        text = render_prompt("followup_generic_v1", first_name="Ana", service="SEO", sender_name="Jose")
        assert "free audit" in text

    def test_missing_template(self):
        with pytest.raises(FileNotFoundError):
            load_prompt_template("does_not_exist_v1")


class TestYAMLSafety:
    """Ensure YAML configs don't contain dangerous patterns."""

    def test_no_yaml_injection(self):
        dangerous = "!!python/object/apply:os.system ['echo pwned']"
        with pytest.raises(yaml.YAMLError):
            yaml.safe_load(dangerous)

    def test_invalid_yaml_handled(self):
        invalid = "services:\n  Funnels:\n    keywords: [unclosed"
        with pytest.raises(yaml.YAMLError):
            yaml.safe_load(invalid)
