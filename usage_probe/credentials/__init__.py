from usage_probe.credentials.store import CredentialStore, normalize_session_key

__all__ = ["CredentialStore", "normalize_session_key"]
