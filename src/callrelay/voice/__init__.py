"""
Voice-session provider package (session creation, recordings, transcripts,
system prompt management).
"""
