"""
Tests for shop_config -- loading, validation and the kernel bridges.

Covers:
- get_active_config() on the packaged defaults and the config trace log
- Validation errors: unknown department, duplicate ids, missing Admin,
  seeded Assigned asset, negative prices
- Optional seed.yaml, missing directory
- build_settings() / build_seed_state()
"""

from decimal import Decimal
from pathlib import Path

import pytest
import yaml

from shop_config import get_active_config
from shop_config.bridges import build_seed_state, build_settings
from shop_config.loader import load_configuration
from shop_config.validator import validate_configuration
from shop_kernel.domain.entities import AssetStatus, Role


DEFAULTS = Path(__file__).resolve().parents[2] / "shop_config" / "defaults"


def write_config(directory: Path, site: dict, seed: dict | None = None) -> Path:
    (directory / "site.yaml").write_text(yaml.safe_dump(site))
    if seed is not None:
        (directory / "seed.yaml").write_text(yaml.safe_dump(seed))
    return directory


def minimal_seed(**overrides):
    seed = {
        "departments": [{"id": "d1", "name": "IT"}],
        "inventory_categories": [{"id": "c1", "name": "Screen"}],
        "employees": [{
            "id": "E1", "staff_id": "MF-1", "name": "Boss", "email": "boss@x.com",
            "department": "IT", "role": "Admin", "status": "Active",
        }],
        "assets": [],
        "parts": [{
            "id": "P1", "name": "Screen", "supplier": "S", "category": "Screen",
            "stock": 1, "min_stock_level": 0, "sale_price": "10", "cost_price": "5",
        }],
    }
    seed.update(overrides)
    return seed


class TestGetActiveConfig:

    def test_packaged_defaults(self):
        config = get_active_config()
        assert config.config_id == "mobifix-default"
        assert config.site.site_name == "MobiFix"
        assert config.auth.master_secret == "1234"
        assert [e.id for e in config.seed.employees] == ["E001", "E002"]
        assert len(config.checksum) == 64

    def test_trace_logged(self, captured_logs):
        get_active_config()
        trace = next(r for r in captured_logs() if r["message"] == "SHOP_CONFIG_TRACE")
        assert trace["config_id"] == "mobifix-default"
        assert trace["part_count"] == 2

    def test_universal_fallback_warning(self, captured_logs):
        get_active_config()
        assert any(
            r["message"] == "config_validation_warning" and "allow_universal_fallback" in r["warning"]
            for r in captured_logs()
        )

    def test_missing_directory(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent")

    def test_seed_file_optional(self, tmp_path):
        write_config(tmp_path, {"site": {"site_name": "Solo"}})
        config = get_active_config(tmp_path)
        assert config.seed.employees == ()
        assert config.config_id == tmp_path.name

    def test_checksum_tracks_content(self, tmp_path):
        a = load_configuration(write_config(tmp_path, {"site": {"site_name": "A"}}))
        b = load_configuration(write_config(tmp_path, {"site": {"site_name": "B"}}))
        assert a.checksum != b.checksum


class TestValidation:

    def test_defaults_valid(self):
        result = validate_configuration(load_configuration(DEFAULTS))
        assert result.is_valid, result.errors

    def test_unknown_department(self, tmp_path):
        seed = minimal_seed()
        seed["employees"][0]["department"] = "Sales"
        write_config(tmp_path, {}, seed)
        with pytest.raises(ValueError, match="unknown department"):
            get_active_config(tmp_path)

    def test_admin_required(self, tmp_path):
        seed = minimal_seed()
        seed["employees"][0]["role"] = "Manager"
        result = validate_configuration(load_configuration(write_config(tmp_path, {}, seed)))
        assert "Seed must contain at least one Admin employee" in result.errors

    def test_duplicate_part_ids(self, tmp_path):
        seed = minimal_seed()
        seed["parts"].append(dict(seed["parts"][0]))
        result = validate_configuration(load_configuration(write_config(tmp_path, {}, seed)))
        assert "Duplicate part id: P1" in result.errors

    def test_assigned_asset_rejected(self, tmp_path):
        seed = minimal_seed(assets=[{
            "id": "A1", "tag": "T1", "serial_number": "S1", "model": "M",
            "category": "Mobile", "status": "Assigned",
        }])
        result = validate_configuration(load_configuration(write_config(tmp_path, {}, seed)))
        assert any("Assigned" in e for e in result.errors)

    def test_negative_price(self, tmp_path):
        seed = minimal_seed()
        seed["parts"][0]["sale_price"] = "-1"
        result = validate_configuration(load_configuration(write_config(tmp_path, {}, seed)))
        assert any("sale_price cannot be negative" in e for e in result.errors)


class TestBridges:

    def test_build_settings(self, shop_configuration):
        settings = build_settings(shop_configuration)
        assert settings.database_url == "sqlite:///mobifix.db"
        assert settings.auth.master_identifier == "Admin"
        assert settings.auth.allow_universal_fallback is True
        assert settings.site.currency == "$"

    def test_build_seed_state(self, shop_configuration):
        state = build_seed_state(shop_configuration)
        admin = state.employees[0]
        assert admin.role == Role.ADMIN
        assert admin.permissions.can_manage_users
        p002 = next(p for p in state.parts if p.id == "P002")
        assert p002.stock == p002.opening_stock == 3
        assert p002.sale_price == Decimal("129")
        assert all(a.status == AssetStatus.AVAILABLE for a in state.assets)
        assert [c.sort_order for c in state.inventory_categories] == [0, 1, 2]

    def test_log_level_carried_into_settings(self, tmp_path):
        write_config(tmp_path, {"logging": {"level": "debug"}})
        assert build_settings(get_active_config(tmp_path)).log_level == "DEBUG"

    def test_unknown_log_level_rejected(self, tmp_path):
        write_config(tmp_path, {"logging": {"level": "chatty"}})
        with pytest.raises(ValueError, match="logging.level"):
            get_active_config(tmp_path)
