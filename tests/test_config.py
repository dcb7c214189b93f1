"""
Tests for BitrixConfig lookups and load_config.
"""

import json

import pytest

from shopify_bitrix.config import (
    BitrixConfig,
    load_config,
    DEFAULT_FALLBACK_PRODUCT_ID,
    DEFAULT_TAX_RATE,
    SHOPIFY_STATUS_TO_BITRIX_STAGE,
)
from shopify_bitrix.exceptions import ConfigurationException


# ---------------------------------------------------------------------------
# BitrixConfig
# ---------------------------------------------------------------------------

class TestBitrixConfig:

    def test_defaults(self):
        config = BitrixConfig()
        assert config.sku_to_product_id == {}
        assert config.category_id == 0
        assert config.default_stage_id is None
        assert config.shipping_product_id == 0
        assert config.fallback_product_id == DEFAULT_FALLBACK_PRODUCT_ID == 2900
        assert config.default_tax_rate == DEFAULT_TAX_RATE == 19.0
        assert config.shipping_tax_rate == 19.0
        assert config.financial_status_stages == SHOPIFY_STATUS_TO_BITRIX_STAGE

    def test_financial_status_lookup(self):
        config = BitrixConfig()
        assert config.financial_status_to_stage_id("paid") == "WON"
        assert config.financial_status_to_stage_id("PAID ") == "WON"
        assert config.financial_status_to_stage_id("refunded") == "LOSE"

    def test_financial_status_unknown_or_missing(self):
        config = BitrixConfig()
        assert config.financial_status_to_stage_id("expired") is None
        assert config.financial_status_to_stage_id(None) is None
        assert config.financial_status_to_stage_id("") is None

    def test_source_lookup(self):
        config = BitrixConfig()
        assert config.source_name_to_source_id("web") == "WEB"
        assert config.source_name_to_source_id("POS") == "STORE"
        assert config.source_name_to_source_id("tiktok") is None
        assert config.source_name_to_source_id(None) is None

    def test_custom_tables_keys_are_case_insensitive(self):
        config = BitrixConfig(
            financial_status_stages={"Paid": "C3:WON"},
            source_ids={"Instagram": "ADVERTISING"},
        )
        assert config.financial_status_to_stage_id("paid") == "C3:WON"
        assert config.source_name_to_source_id("instagram") == "ADVERTISING"

    def test_product_ids_are_coerced(self):
        config = BitrixConfig(sku_to_product_id={"SOCK-01": "2901"})
        assert config.sku_to_product_id == {"SOCK-01": 2901}

    def test_config_is_immutable(self):
        config = BitrixConfig()
        with pytest.raises(Exception):
            config.category_id = 5

    def test_lookup_tables_are_read_only(self):
        config = BitrixConfig(sku_to_product_id={"TEE-M": 101})
        with pytest.raises(TypeError):
            config.sku_to_product_id["TEE-L"] = 102
        with pytest.raises(TypeError):
            config.financial_status_stages["paid"] = "LOSE"
        with pytest.raises(TypeError):
            config.source_ids["web"] = "OTHER"

    def test_unknown_fields_rejected(self):
        with pytest.raises(Exception):
            BitrixConfig(sku_map={"A": 1})


# ---------------------------------------------------------------------------
# load_config
# ---------------------------------------------------------------------------

@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "bitrix.json"
    path.write_text(json.dumps({
        "sku_to_product_id": {"TEE-M": 101, "TEE-L": 102},
        "category_id": 4,
        "default_stage_id": "C4:NEW",
        "shipping_product_id": 3100,
    }))
    return path


class TestLoadConfig:

    def test_empty_environment_gives_defaults(self):
        assert load_config({}) == BitrixConfig()

    def test_reads_json_file(self, config_file):
        config = load_config({"BITRIX_CONFIG_PATH": str(config_file)})
        assert config.sku_to_product_id == {"TEE-M": 101, "TEE-L": 102}
        assert config.category_id == 4
        assert config.default_stage_id == "C4:NEW"
        assert config.shipping_product_id == 3100

    def test_env_overrides_file(self, config_file):
        config = load_config({
            "BITRIX_CONFIG_PATH": str(config_file),
            "BITRIX_CATEGORY_ID": "7",
            "BITRIX_SHIPPING_PRODUCT_ID": " 3200 ",
            "BITRIX_FALLBACK_PRODUCT_ID": "2950",
            "BITRIX_DEFAULT_STAGE_ID": "C7:NEW",
        })
        assert config.category_id == 7
        assert config.shipping_product_id == 3200
        assert config.fallback_product_id == 2950
        assert config.default_stage_id == "C7:NEW"

    def test_sku_map_env_merges_over_file(self, config_file):
        config = load_config({
            "BITRIX_CONFIG_PATH": str(config_file),
            "BITRIX_SKU_MAP": json.dumps({"TEE-L": 202, "SOCK-01": 2901}),
        })
        assert config.sku_to_product_id == {"TEE-M": 101, "TEE-L": 202, "SOCK-01": 2901}

    def test_reads_os_environ_by_default(self, monkeypatch):
        monkeypatch.delenv("BITRIX_CONFIG_PATH", raising=False)
        monkeypatch.setenv("BITRIX_CATEGORY_ID", "9")
        assert load_config().category_id == 9

    def test_missing_file_raises(self, tmp_path):
        missing = tmp_path / "nope.json"
        with pytest.raises(ConfigurationException) as exc_info:
            load_config({"BITRIX_CONFIG_PATH": str(missing)})
        assert exc_info.value.source == str(missing)

    def test_invalid_json_file_raises(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{not json")
        with pytest.raises(ConfigurationException, match="not valid JSON"):
            load_config({"BITRIX_CONFIG_PATH": str(path)})

    def test_non_object_file_raises(self, tmp_path):
        path = tmp_path / "list.json"
        path.write_text("[1, 2]")
        with pytest.raises(ConfigurationException) as exc_info:
            load_config({"BITRIX_CONFIG_PATH": str(path)})
        assert exc_info.value.details == {"type": "list"}

    def test_invalid_sku_map_env_raises(self):
        with pytest.raises(ConfigurationException, match="BITRIX_SKU_MAP"):
            load_config({"BITRIX_SKU_MAP": "TEE-M=101"})
        with pytest.raises(ConfigurationException, match="BITRIX_SKU_MAP"):
            load_config({"BITRIX_SKU_MAP": "[101]"})

    def test_invalid_value_raises_with_errors(self):
        with pytest.raises(ConfigurationException) as exc_info:
            load_config({"BITRIX_CATEGORY_ID": "sales"})
        errors = exc_info.value.details["errors"]
        assert errors[0]["loc"] == ("category_id",)
