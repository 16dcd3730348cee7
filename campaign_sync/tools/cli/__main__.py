"""
Entry point of `campaign-sync` CLI when run as a module.
"""
from .main import run

if __name__ == "__main__":
    run()
