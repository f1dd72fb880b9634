"""
Infrastructure 계층 -- 모든 I/O 관련 모듈

서브패키지:
- database: DB 커넥션, 스키마, Repository
"""
