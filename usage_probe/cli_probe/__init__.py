from usage_probe.cli_probe.client import ProcessUsageClient
from usage_probe.cli_probe.supervisor import ProcessResult, PtySupervisor

__all__ = ["ProcessUsageClient", "ProcessResult", "PtySupervisor"]
