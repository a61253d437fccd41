"""Command line interface modules.

This package provides the command-line tools for:
- Opening a tunnel through a SOCKS5 proxy and exchanging data
- Inspecting the CONNECT request sent for a destination
- Displaying per-tunnel and process-wide traffic statistics
"""
