from .suite_commands import suite_cli

__all__ = ["suite_cli"]
