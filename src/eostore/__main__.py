"""Entry point for 'python -m eostore' command."""

from eostore.cli import main

if __name__ == "__main__":
    main()
