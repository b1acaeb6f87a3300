"""
Services.

Chain access, decoding, event processing, persistence and sync orchestration.
"""
