"""oslo.config options for embedding the controller in an oslo service.

Services that already configure themselves through oslo.config can register
these options on their ``ConfigOpts`` instance and build the controller
settings from it instead of loading the agent's YAML file.
"""

import dataclasses

from oslo_config import cfg

from .config import ControllerConfig
from .watchers.utils import normalise_ips

CONTROLLER_OPTS = (
    ("annotation_key", "lb_ipam_annotation_key"),
    ("conflict_retries", "lb_ipam_conflict_retries"),
    ("request_timeout", "lb_ipam_request_timeout"),
)

lb_ipam_opts = [
    cfg.ListOpt('lb_ipam_pool_ips',
                default=[],
                help='Pool IPs eligible for assignment to nodes. '
                     'Example: 192.0.2.10,192.0.2.11'),
    cfg.StrOpt('lb_ipam_annotation_key',
               default=None,
               help='Node annotation that records the assigned pool IP. '
                    'If not set, the agent configuration value is kept.'),
    cfg.IntOpt('lb_ipam_conflict_retries',
               default=None,
               min=0,
               help='How many times assign/release re-fetch a node after '
                    'a concurrent modification before giving up. '
                    'If not set, the agent configuration value is kept.'),
    cfg.FloatOpt('lb_ipam_request_timeout',
                 default=None,
                 help='Timeout in seconds for node registry requests. '
                      'If not set, the agent configuration value is kept.'),
]


def register_opts(conf=None):
    """Register the lb-ipam options to the DEFAULT group of ``conf``.

    Defaults to the global ``cfg.CONF``.  Returns the ``ConfigOpts`` used.
    """
    conf = cfg.CONF if conf is None else conf
    conf.register_opts(lb_ipam_opts)
    return conf


def controller_config_from_conf(conf, base=None):
    """Build a :class:`ControllerConfig` from registered options.

    Options left unset keep the value from ``base`` (or the built-in
    default when ``base`` is not given).
    """
    overrides = {}
    for field_name, opt_name in CONTROLLER_OPTS:
        value = getattr(conf, opt_name)
        if value is not None:
            overrides[field_name] = value
    base = ControllerConfig() if base is None else base
    return dataclasses.replace(base, **overrides)


def pool_ips_from_conf(conf):
    """Return the configured pool IPs, de-duplicated in order."""
    return normalise_ips(conf.lb_ipam_pool_ips)
