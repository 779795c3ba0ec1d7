"""
Test suite for the archive export pipeline.

Test Categories:
- Encoder tests: byte layout of stored ZIP archives, read back with zipfile
- Component tests: sanitizer, entries, backends, sinks, settings, progress
- Orchestration tests: tier fallback, cancellation and direct delivery
"""
