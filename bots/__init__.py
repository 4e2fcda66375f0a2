"""Discord runtime for the bio-code verification engine.

Holds the environment configuration, the Discord-backed dispatcher and the
scheduled sweep/health loops; the engine itself lives in ``bio_verifier``.
"""

__all__ = ["config", "dispatcher", "runtime"]
