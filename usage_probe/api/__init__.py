from usage_probe.api.app import create_app

__all__ = ["create_app"]
