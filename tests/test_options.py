"""
Tests for Ipopt option conversion and YAML loading.
"""

import logging

import pytest

from nlpbridge.adapter import AdapterOptions
from nlpbridge.engine import (
    IpoptOptions,
    build_casadi_options,
    load_options,
    options_from_dict,
)
from nlpbridge.engine.ipopt_options import PRINT_LEVEL_ENV


@pytest.fixture(autouse=True)
def _no_print_level_override(monkeypatch):
    monkeypatch.delenv(PRINT_LEVEL_ENV, raising=False)


class TestBuildCasadiOptions:
    def test_direct_fields_mapped(self):
        opts = build_casadi_options(IpoptOptions(max_iter=10, tol=1e-4, mu_strategy="monotone"))
        assert opts["ipopt.max_iter"] == 10
        assert opts["ipopt.tol"] == 1e-4
        assert opts["ipopt.mu_strategy"] == "monotone"
        assert opts["ipopt.hessian_approximation"] == "limited-memory"
        assert opts["ipopt.linear_solver"] == "mumps"

    def test_all_keys_prefixed(self):
        assert all(key.startswith("ipopt.") for key in build_casadi_options(IpoptOptions()))

    def test_robust_defaults_do_not_override(self):
        options = IpoptOptions(linear_solver_options={"nlp_scaling_method": "none"})
        opts = build_casadi_options(options)
        assert opts["ipopt.nlp_scaling_method"] == "none"

    def test_linear_solver_options_copied(self):
        options = IpoptOptions(linear_solver_options={"mumps_mem_percent": 2000})
        assert build_casadi_options(options)["ipopt.mumps_mem_percent"] == 2000

    def test_silent_by_default(self):
        opts = build_casadi_options(IpoptOptions())
        assert opts["ipopt.print_level"] == 0
        assert opts["ipopt.sb"] == "yes"

    def test_output_file(self):
        opts = build_casadi_options(IpoptOptions(output_file="run.log"))
        assert opts["ipopt.output_file"] == "run.log"

    def test_analysis_log_in_log_dir(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        opts = build_casadi_options(IpoptOptions(enable_analysis=True))
        assert opts["ipopt.output_file"].startswith("logs")
        assert (tmp_path / "logs" / "ipopt").is_dir()

    def test_env_print_level_override(self, monkeypatch):
        monkeypatch.setenv(PRINT_LEVEL_ENV, "5")
        assert build_casadi_options(IpoptOptions())["ipopt.print_level"] == 5

    def test_env_print_level_clamped(self, monkeypatch):
        monkeypatch.setenv(PRINT_LEVEL_ENV, "40")
        assert build_casadi_options(IpoptOptions())["ipopt.print_level"] == 12

    def test_invalid_env_print_level_ignored(self, monkeypatch, caplog):
        monkeypatch.setenv(PRINT_LEVEL_ENV, "loud")
        with caplog.at_level(logging.WARNING):
            opts = build_casadi_options(IpoptOptions(print_level=3))
        assert opts["ipopt.print_level"] == 3
        assert PRINT_LEVEL_ENV in caplog.text


class TestIpoptOptions:
    def test_exact_hessian_rejected(self):
        with pytest.raises(ValueError, match="limited-memory"):
            IpoptOptions(hessian_approximation="exact")

    def test_warm_start_flag_validated(self):
        with pytest.raises(ValueError):
            IpoptOptions(warm_start_init_point="maybe")

    def test_from_dict_accepts_prefixed_keys(self):
        options = options_from_dict({"ipopt.max_iter": 12, "tol": 1e-3})
        assert options.max_iter == 12
        assert options.tol == 1e-3

    def test_from_dict_warns_on_unknown(self, caplog):
        with caplog.at_level(logging.WARNING):
            options = options_from_dict({"max_iter": 5, "bogus": 1})
        assert options.max_iter == 5
        assert "Unknown Ipopt option: bogus" in caplog.text


class TestLoadOptions:
    def test_both_sections(self, tmp_path):
        path = tmp_path / "opts.yaml"
        path.write_text(
            "ipopt:\n"
            "  max_iter: 50\n"
            "  mu_strategy: monotone\n"
            "adapter:\n"
            "  bound_multiplier_init: 0.5\n"
            "  check_derivatives: true\n"
        )
        ipopt_options, adapter_options = load_options(path)
        assert ipopt_options.max_iter == 50
        assert ipopt_options.mu_strategy == "monotone"
        assert adapter_options == AdapterOptions(bound_multiplier_init=0.5, check_derivatives=True)

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        ipopt_options, adapter_options = load_options(path)
        assert ipopt_options == IpoptOptions()
        assert adapter_options == AdapterOptions()

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ValueError):
            load_options(path)

    def test_unknown_section_warned(self, tmp_path, caplog):
        path = tmp_path / "extra.yaml"
        path.write_text("solver:\n  name: ipopt\n")
        with caplog.at_level(logging.WARNING):
            load_options(path)
        assert "solver" in caplog.text
