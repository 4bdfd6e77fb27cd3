"""
FastAPI Routes.

API 라우트 (REST, JSON): 숙제 도우미 / 배틀 / 프로필·카탈로그
"""

from . import battle, homework, profile

__all__ = ["battle", "homework", "profile"]
