"""Entry point for ``python -m anode_mcp_client``."""

from .cli import main

if __name__ == "__main__":
    main()
