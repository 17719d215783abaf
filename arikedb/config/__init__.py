from arikedb.config.client_config import ArikedbClientConfig

__all__ = ["ArikedbClientConfig"]
