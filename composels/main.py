"""
Console entry point for the Compose Language Server.

Set DEBUG to wait for a debugpy client on port 5678 before serving.
"""
import os
import sys

from composels.lsp.server import create_server

DEBUG_HOST = "127.0.0.1"
DEBUG_PORT = 5678


def main():
    """Start the language server on stdin/stdout."""

    # stdout carries the protocol, so talk to the user on stderr
    if os.getenv("DEBUG"):
        print("Compose server starting in DEBUG mode", file=sys.stderr)
        print(f"Waiting for debugger to attach on port {DEBUG_PORT}...", file=sys.stderr)
        try:
            import debugpy  # type: ignore
        except ImportError:
            print("debugpy not available - install with: pip install -e .[dev]", file=sys.stderr)
        else:
            debugpy.listen((DEBUG_HOST, DEBUG_PORT))
            debugpy.wait_for_client()
            print("Debugger attached! Continuing...", file=sys.stderr)

    server = create_server()
    server.start_io()


if __name__ == "__main__":
    main()
