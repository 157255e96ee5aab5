"""Entry point for running notcoal as a module.

Usage:
    python -m notcoal filter
    python -m notcoal --help
"""

from dotenv import load_dotenv

load_dotenv()  # Load .env before any other imports that read env vars

from notcoal.cli import main  # noqa: E402

if __name__ == "__main__":
    main()
