"""
Main entry point for the Compose Language Server.

This file is executed when running: python -m composels

The server communicates with editors via stdin/stdout using JSON-RPC.
"""
from composels.main import main

if __name__ == "__main__":
    main()
