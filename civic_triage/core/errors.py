"""
Error taxonomy for civic-triage.

Absence of a UC assignment is not an error; it is reported as an
``Assignment`` with ``method="none"``.
"""


class TriageError(Exception):
    """트리아지 엔진 기본 예외"""


class NotFound(TriageError):
    """참조된 카테고리/지리 단위/민원이 존재하지 않음"""

    def __init__(self, kind: str, ref: str):
        self.kind = kind
        self.ref = ref
        super().__init__(f"{kind} not found: {ref}")


class InvalidInput(TriageError):
    """좌표 범위 초과, 잘못된 폴리곤, 빈 설명 등 입력 오류"""


class InvalidTransition(TriageError):
    """상태 전이 그래프 위반"""

    def __init__(self, from_status: str, to_status: str):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(f"Invalid status transition from {from_status} to {to_status}")
