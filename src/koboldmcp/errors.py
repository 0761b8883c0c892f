from __future__ import annotations


class DispatchError(RuntimeError):
    kind = "DispatchError"


class UnknownTool(DispatchError):
    kind = "UnknownTool"

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown tool: {name}")
        self.name = name


class InvalidArguments(DispatchError):
    kind = "InvalidArguments"

    def __init__(self, tool: str, problems: list[str]) -> None:
        detail = "; ".join(problems) or "arguments do not match the declared shape"
        super().__init__(f"Invalid arguments for {tool}: {detail}")
        self.tool = tool
        self.problems = problems


class UpstreamError(DispatchError):
    kind = "UpstreamError"

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
