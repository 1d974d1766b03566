from usage_probe.parsing.reset_time import default_reset_time, resolve_reset_time
from usage_probe.parsing.terminal import parse_usage_output

__all__ = ["default_reset_time", "parse_usage_output", "resolve_reset_time"]
