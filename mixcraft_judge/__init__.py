"""MIXCRAFT judge - scoring engine and MCP server for sound-design challenges."""

__all__ = ["main"]


def main():
    """Main entry point - lazy import so the scoring modules load without the MCP stack."""
    from .main import main as _main
    return _main()
