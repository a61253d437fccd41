"""Core SOCKS5 client implementation.

This package contains the core components of the proxy socket:
- Address encoding for SOCKS5 requests
- The client handshake state machine
- The proxy socket and its relay mode
- Transports that carry bytes to the proxy
- Traffic statistics
- Exception handling

The core package has no terminal output of its own; everything user facing
lives in the command-line package.
"""
