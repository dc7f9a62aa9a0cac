"""Allow ``python -m mcp_compression_proxy``."""

from mcp_compression_proxy.cli import main

main()
