from pathlib import Path

import pytest
from oslo_config import cfg

from lbipam_agent import opts
from lbipam_agent.config import AgentConfig, ControllerConfig
from lbipam_agent.main import _apply_oslo_config


def build_conf(tmp_path: Path, body: str) -> cfg.ConfigOpts:
    conf_file = tmp_path / "lb-ipam.conf"
    conf_file.write_text(body)
    conf = opts.register_opts(cfg.ConfigOpts())
    conf(args=[], default_config_files=[str(conf_file)])
    return conf


def test_defaults(tmp_path: Path):
    conf = build_conf(tmp_path, "[DEFAULT]\n")

    controller = opts.controller_config_from_conf(conf)

    assert controller.annotation_key == "lb-ipam.io/assigned-ip"
    assert controller.conflict_retries == 3
    assert controller.request_timeout is None
    assert opts.pool_ips_from_conf(conf) == []


def test_options_from_file(tmp_path: Path):
    conf = build_conf(
        tmp_path,
        "[DEFAULT]\n"
        "lb_ipam_pool_ips = 198.51.100.1, 198.51.100.2, 198.51.100.1\n"
        "lb_ipam_annotation_key = example.com/ip\n"
        "lb_ipam_conflict_retries = 1\n"
        "lb_ipam_request_timeout = 4.5\n",
    )

    controller = opts.controller_config_from_conf(conf)

    assert opts.pool_ips_from_conf(conf) == ["198.51.100.1", "198.51.100.2"]
    assert controller.annotation_key == "example.com/ip"
    assert controller.conflict_retries == 1
    assert controller.request_timeout == pytest.approx(4.5)


def test_unset_options_keep_base_values(tmp_path: Path):
    conf = build_conf(tmp_path, "[DEFAULT]\nlb_ipam_request_timeout = 1.5\n")
    base = ControllerConfig(annotation_key="example.com/ip", conflict_retries=7)

    controller = opts.controller_config_from_conf(conf, base=base)

    assert controller.annotation_key == "example.com/ip"
    assert controller.conflict_retries == 7
    assert controller.request_timeout == pytest.approx(1.5)
    assert base.request_timeout is None


def test_apply_oslo_config_keeps_yaml_controller_values(tmp_path: Path):
    conf_file = tmp_path / "lb-ipam.conf"
    conf_file.write_text("[DEFAULT]\nlb_ipam_pool_ips = 198.51.100.7\n")
    config = AgentConfig(
        controller=ControllerConfig(annotation_key="example.com/ip", conflict_retries=7),
        pool_ips=["192.0.2.1"],
    )

    _apply_oslo_config(config, conf_file)

    assert config.pool_ips == ["198.51.100.7"]
    assert config.controller.annotation_key == "example.com/ip"
    assert config.controller.conflict_retries == 7


def test_apply_oslo_config_without_pool_keeps_yaml_pool(tmp_path: Path):
    conf_file = tmp_path / "lb-ipam.conf"
    conf_file.write_text("[DEFAULT]\nlb_ipam_annotation_key = other.io/ip\n")
    config = AgentConfig(pool_ips=["192.0.2.1"])

    _apply_oslo_config(config, conf_file)

    assert config.pool_ips == ["192.0.2.1"]
    assert config.controller.annotation_key == "other.io/ip"
