"""
Services Layer

- format_rules / formats / tournament_engine: the pure draw engine
- tournament_service: drives the engine over persisted tournaments
- score_parser: score strings from the scoring desk

Nothing here depends on HTTP request/response objects.
"""
