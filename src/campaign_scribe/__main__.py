"""Command-line interface for campaign_scribe."""

import sys


def main() -> int:
    """
    Main entry point for the campaign_scribe package.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    print("Campaign Scribe")
    print("=" * 60)
    print("\nAvailable commands:")
    print("  python -m campaign_scribe.diarization RESPONSE.json  - Preview speaker blocks")
    print("  python -m campaign_scribe.api                        - Run the web API")
    print("  python -m campaign_scribe.batch.stats_job            - Per-speaker stats job")
    return 0


if __name__ == "__main__":
    sys.exit(main())
