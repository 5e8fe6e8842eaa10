"""FrameScan: LLM-backed frame analysis of text and images, scored 0-100."""
