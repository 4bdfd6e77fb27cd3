"""
App layer: API 서버 (FastAPI).

역할:
- 숙제 도우미 릴레이 (사진/텍스트/문서 → LLM → 풀이 JSON)
- 배틀 세션 관리 (메모리), 문제 생성 호출
- ⚠️ 게임 규칙/저장 로직 없음 (core에 위임)
"""
