"""전역 설정."""
