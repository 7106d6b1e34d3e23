"""
Entry point for the wormhole bridge.

Usage:
    python -m wormhole_bridge serve --config wormhole.yaml
    python -m wormhole_bridge send report.pdf
"""

from .cli import app

if __name__ == "__main__":
    app()
