"""Entry point for 'python -m guildledger' command."""

from guildledger.cli import main

if __name__ == "__main__":
    main()
