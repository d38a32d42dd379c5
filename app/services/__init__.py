"""서비스 패키지 — 비즈니스 로직 계층.

Service package. Each module exposes a singleton service that takes the
database session (and, where access rules apply, a RequestContext) as
explicit arguments.
"""
