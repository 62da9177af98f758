"""Run the diarization CLI: python -m campaign_scribe.diarization."""

from campaign_scribe.diarization.cli import main

if __name__ == "__main__":
    main()
