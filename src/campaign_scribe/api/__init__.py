"""HTTP API for diarization intake, session speakers, and display blocks."""
