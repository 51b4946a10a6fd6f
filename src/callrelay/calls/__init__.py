"""
Call lifecycle: registry, post-call artifact retrieval, downstream
notification and orchestration.
"""
