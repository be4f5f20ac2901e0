from enum import Enum

class ErrorCode(str, Enum):
    """
    Canonical error codes for the outward error envelope and log lines.
    One code per failure kind the gateway can surface.
    """
    input_validation         = "input_validation"
    auth_configuration       = "auth_configuration"
    server_misconfiguration  = "server_misconfiguration"
    network_failure          = "network_failure"
    upstream_auth_failure    = "upstream_auth_failure"
    upstream_failure         = "upstream_failure"
    parse_failure            = "parse_failure"
    internal_io              = "internal_io"
    internal                 = "internal"

__all__ = ["ErrorCode"]
