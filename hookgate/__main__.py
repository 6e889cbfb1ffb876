"""
Hookgate - hook output interpretation and policy enforcement

Quick Start:
    pip install -e .
    hookgate match "Edit|Write" Edit Read
    echo '{"continue": false}' | hookgate parse --event Stop
"""

from hookgate.cli.cli import main

if __name__ == "__main__":
    main()
