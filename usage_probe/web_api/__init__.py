from usage_probe.web_api.client import HttpUsageClient, tokens_from_percentage

__all__ = ["HttpUsageClient", "tokens_from_percentage"]
