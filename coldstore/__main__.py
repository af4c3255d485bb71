"""
Entry point: python -m coldstore
"""
from coldstore.cli.cli import app

if __name__ == "__main__":
    app()
